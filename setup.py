"""
Setup script for swapwatch package

Handles package dependencies and installation configuration.
"""

from setuptools import setup, find_packages

setup(
    name="swapwatch",
    version="0.1",
    description="Async multi-chain swap detection and Telegram alert pipeline",
    packages=find_packages(include=["swapwatch", "swapwatch.*"]),
    py_modules=["main"],
    install_requires=[
        "web3>=7.0.0",
        "eth-abi>=5.0.0",
        "eth-typing>=3.0.0",
        "hexbytes>=1.0.0",
        "pydantic>=2.0.0",
        "loguru>=0.7.0",
        "tomli>=2.0.0",
        "python-telegram-bot>=21.0",
        "aiodiskqueue",
        "aiosqlite>=0.19.0",
        "httpx>=0.25.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "tomli-w>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "swapwatch=main:main",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial",
    ],
)
