from typing import List

from ..config import Config
from ..logger import logger
from ..services.mev import MevFilter
from ..services.price import COINGECKO_API, DEXSCREENER_API, PriceResolver
from .base import Collector, Executor, Strategy
from .cache import TTLCache
from .context import ServiceContext
from .models import TrackedToken
from .policy import AlertPolicy
from .storage import create_swap_storage
from .swapwatch import SwapWatch


def build_context(config: Config) -> ServiceContext:
    """Create the shared services described by the configuration"""
    cache_config = config.get("cache", {})
    price_config = config.get("prices", {})
    cache = TTLCache(default_ttl=cache_config.get("price_ttl", 60))

    storage = create_swap_storage(config.get("storage", {}))
    price_resolver = PriceResolver(
        cache,
        coingecko_url=price_config.get("coingecko_url", COINGECKO_API),
        dexscreener_url=price_config.get("dexscreener_url", DEXSCREENER_API),
        timeout=price_config.get("timeout", 5.0),
        ttl=cache_config.get("price_ttl", 60),
    )
    mev_filter = MevFilter(storage, cache, ttl=cache_config.get("blacklist_ttl", 60))

    return ServiceContext(
        storage=storage,
        cache=cache,
        price_resolver=price_resolver,
        mev_filter=mev_filter,
        policy=AlertPolicy.from_config(config.get("policy", {})),
        token_seeds=[TrackedToken(**entry) for entry in config.tokens],
        seed_mev_blacklist=config.get("policy.seed_mev_blacklist", True),
    )


class SwapWatchBuilder:
    """Builds a SwapWatch instance and its components from configuration"""

    def __init__(self, config: Config):
        self.config = config
        self.context = build_context(config)

        queue_config = config.get("queues", {})
        self.swapwatch = SwapWatch(
            queue_dir=queue_config.get("queue_dir", "data/queues"),
            group_name=queue_config.get("group_name", "swapwatch"),
            stats_interval=queue_config.get("stats_interval", 60),
            max_concurrent_events=queue_config.get("max_concurrent_events", 16),
            context=self.context,
        )

        self.collectors: List[Collector] = []
        self.strategies: List[Strategy] = []
        self.executors: List[Executor] = []

    def build_collectors(self) -> "SwapWatchBuilder":
        collectors = self.config.collectors
        if not isinstance(collectors, list):
            raise ValueError("collectors.enabled must be a list")

        for name in collectors:
            collector = Collector.create(
                name, context=self.context, **self.config.get_collector_config(name)
            )
            self.collectors.append(collector)
            logger.info(f"Added collector: {name}")
        return self

    def build_strategies(self) -> "SwapWatchBuilder":
        strategies = self.config.strategies
        if not isinstance(strategies, list):
            raise ValueError("strategies.enabled must be a list")

        for name in strategies:
            strategy = Strategy.create(
                name, context=self.context, **self.config.get_strategy_config(name)
            )
            self.strategies.append(strategy)
            logger.info(f"Added strategy: {name}")
        return self

    def build_executors(self) -> "SwapWatchBuilder":
        executors = self.config.executors
        if not isinstance(executors, list):
            raise ValueError("executors.enabled must be a list")

        for name in executors:
            executor = Executor.create(
                name, context=self.context, **self.config.get_executor_config(name)
            )
            self.executors.append(executor)
            logger.info(f"Added executor: {name}")
        return self

    def build(self) -> SwapWatch:
        for collector in self.collectors:
            self.swapwatch.add_collector(collector)

        for strategy in self.strategies:
            self.swapwatch.add_strategy(strategy)

        for executor in self.executors:
            self.swapwatch.add_executor(executor)

        return self.swapwatch
