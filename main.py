import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

# Importing the package registers all components
import swapwatch
from swapwatch.config import Config
from swapwatch.core.builder import SwapWatchBuilder
from swapwatch.logger import logger, setup_logger

class GracefulExit(SystemExit):
    """Raised from the signal handler to unwind the event loop"""
    code = 1

def handle_signal(signum, frame):
    logger.info(f"Received signal {signum}")
    raise GracefulExit()

async def run_swapwatch(config_path: Optional[str] = None) -> None:
    """
    Build the pipeline from configuration and run it until a signal arrives

    Args:
        config_path: Optional path to the configuration file
    """
    instance = None

    try:
        config = Config(config_path)
        setup_logger(config.get('logging', {}))

        instance = (SwapWatchBuilder(config)
                    .build_collectors()
                    .build_strategies()
                    .build_executors()
                    .build())

        logger.info("Starting SwapWatch...")
        await instance.start()

        try:
            await instance.join()
        except GracefulExit:
            logger.info("Received shutdown signal, stopping gracefully...")

    except Exception as e:
        logger.opt(exception=True).error(f"Error running SwapWatch: {e}")
        raise
    finally:
        if instance:
            logger.info("Shutting down SwapWatch...")
            try:
                await asyncio.wait_for(instance.stop(), timeout=20.0)
                logger.info("SwapWatch stopped successfully")
            except asyncio.TimeoutError:
                logger.error("Timeout while stopping SwapWatch")
            except Exception as e:
                logger.error(f"Error stopping SwapWatch: {e}")

def main():
    """Command line entry point: `swapwatch [config.toml]`"""
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    config_path = None
    if len(sys.argv) > 1:
        config_path = Path(sys.argv[1])
        if not config_path.exists():
            logger.error(f"Config file not found: {config_path}")
            sys.exit(1)

    try:
        asyncio.run(run_swapwatch(config_path))
    except GracefulExit:
        sys.exit(0)
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
