import asyncio
import time
from typing import Callable, Optional
from ..logger import logger


class StatsManager:
    """
    Pipeline throughput counters with periodic logging

    Tracks raw chain events observed by collectors, events processed by the
    strategies, alerts generated and alerts executed, plus the time since
    each stage was last active.
    """

    def __init__(
        self,
        stats_interval: int = 60,
        get_event_queue_size: Optional[Callable[[], int]] = None,
        get_action_queue_size: Optional[Callable[[], int]] = None,
        idle_warning_after: float = 300.0,
    ):
        """
        Args:
            stats_interval: How often to log statistics (in seconds)
            get_event_queue_size: Callable returning the event queue depth
            get_action_queue_size: Callable returning the action queue depth
            idle_warning_after: Warn when a stage has been idle this long
        """
        self.stats_interval = stats_interval
        self.get_event_queue_size = get_event_queue_size
        self.get_action_queue_size = get_action_queue_size
        self.idle_warning_after = idle_warning_after

        # Counters for the current interval
        self.events_observed = 0
        self.events_processed = 0
        self.alerts_generated = 0
        self.alerts_executed = 0
        self.events_in_flight = 0
        self.last_stats_time = time.time()

        # Lifetime totals
        self.total_events = 0
        self.total_alerts = 0

        self.last_collector_active = time.time()
        self.last_strategy_active = time.time()
        self.last_executor_active = time.time()

        self.running = False
        self._task = None

    def on_event_collected(self):
        self.events_observed += 1
        self.total_events += 1
        self.last_collector_active = time.time()

    def on_event_started(self):
        self.events_in_flight += 1
        self.last_strategy_active = time.time()

    def on_event_processed(self):
        self.events_processed += 1
        self.events_in_flight = max(0, self.events_in_flight - 1)
        self.last_strategy_active = time.time()

    def on_action_generated(self):
        self.alerts_generated += 1
        self.total_alerts += 1

    def on_action_executed(self):
        self.alerts_executed += 1
        self.last_executor_active = time.time()

    async def start(self):
        """Start the stats logging task"""
        self.running = True
        self._task = asyncio.create_task(
            self._log_stats(),
            name="stats_manager"
        )
        return self._task

    async def stop(self):
        """Stop the stats logging task"""
        self.running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info(
            f"Final stats - swaps observed={self.total_events}, alerts generated={self.total_alerts}"
        )

    def snapshot(self) -> str:
        now = time.time()
        elapsed = now - self.last_stats_time
        observe_rate = self.events_observed / elapsed if elapsed > 0 else 0
        process_rate = self.events_processed / elapsed if elapsed > 0 else 0

        events_queued = self.get_event_queue_size() if self.get_event_queue_size else 0
        actions_queued = self.get_action_queue_size() if self.get_action_queue_size else 0

        return (
            f"Stats - Swaps: observed={self.events_observed} ({observe_rate:.1f}/s), "
            f"processed={self.events_processed} ({process_rate:.1f}/s), "
            f"in_flight={self.events_in_flight}, queued={events_queued} | "
            f"Alerts: generated={self.alerts_generated}, executed={self.alerts_executed}, "
            f"queued={actions_queued}"
        )

    async def _log_stats(self):
        while self.running:
            await asyncio.sleep(int(self.stats_interval))
            try:
                now = time.time()
                logger.info(self.snapshot())

                collector_idle = now - self.last_collector_active
                if collector_idle > self.idle_warning_after:
                    logger.warning(f"No swaps observed for {collector_idle:.1f} seconds")

                self.events_observed = 0
                self.events_processed = 0
                self.alerts_generated = 0
                self.alerts_executed = 0
                self.last_stats_time = now

            except Exception as e:
                logger.error(f"Error logging stats: {e}")
