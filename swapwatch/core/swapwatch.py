import asyncio
import os
import time
from typing import Any, Dict, List, Optional, Set

from aiodiskqueue import Queue

from ..logger import logger
from .actions import Action
from .base import Collector, Component, Executor, Strategy
from .context import ServiceContext
from .events import Event
from .stats import StatsManager

# Queue reads wake up this often to check the running flag
QUEUE_POLL_TIMEOUT = 2.0


class SwapWatch:
    """
    Main application class that runs the swap alert pipeline

    Collectors put raw chain events on a disk-backed event queue. The
    strategy processor takes each event and runs the strategies on it in
    its own task, with at most `max_concurrent_events` in flight. Actions
    go to a disk-backed action queue and are handed to every executor.
    """

    def __init__(
        self,
        queue_dir: str = "data/queues",
        group_name: str = "swapwatch",
        stats_interval: int = 60,
        max_concurrent_events: int = 16,
        collector_restart_delay: float = 5.0,
        context: Optional[ServiceContext] = None,
    ):
        """
        Args:
            queue_dir: Directory for queue storage
            group_name: Group name for queue identification
            stats_interval: How often to log statistics (in seconds)
            max_concurrent_events: Upper bound on events processed at once
            collector_restart_delay: Pause before restarting a failed collector
            context: Shared services, initialized on start and closed on stop
        """
        self.collectors: List[Collector] = []
        self.strategies: List[Strategy] = []
        self.executors: List[Executor] = []
        self.context = context
        self.running: bool = False

        os.makedirs(queue_dir, exist_ok=True)
        self.event_queue_path: str = os.path.join(queue_dir, f"{group_name}_events.db")
        self.action_queue_path: str = os.path.join(queue_dir, f"{group_name}_actions.db")

        # Queues are created in start()
        self.event_queue: Queue[Event] = None  # type: ignore
        self.action_queue: Queue[Action] = None  # type: ignore

        self.max_concurrent_events = max_concurrent_events
        self.collector_restart_delay = collector_restart_delay
        self._event_slots = asyncio.Semaphore(max_concurrent_events)
        self._event_tasks: Set[asyncio.Task] = set()
        self._pending_gets: Dict[str, asyncio.Task] = {}
        self._executing = False

        self._tasks: Optional[List[asyncio.Task[Any]]] = None

        self.stats = StatsManager(
            stats_interval=stats_interval,
            get_event_queue_size=lambda: self.event_queue.qsize() if self.event_queue else 0,
            get_action_queue_size=lambda: self.action_queue.qsize() if self.action_queue else 0,
        )

    def add_collector(self, collector: Collector):
        """Add event collector to the pipeline"""
        self.collectors.append(self._checked(collector, Collector))

    def add_strategy(self, strategy: Strategy):
        """Add event processing strategy to the pipeline"""
        self.strategies.append(self._checked(strategy, Strategy))

    def add_executor(self, executor: Executor):
        """Add action executor to the pipeline"""
        self.executors.append(self._checked(executor, Executor))

    @staticmethod
    def _checked(component: Component, kind: type) -> Component:
        if not isinstance(component, kind):
            raise TypeError(f"Expected a {kind.__name__} instance, got {type(component).__name__}")
        logger.info(f"Added {kind.__name__.lower()}: {component.name}")
        return component

    async def start(self):
        """
        Initialize shared services, start all components and begin processing

        Raises:
            Exception: If any component fails to start
        """
        self.running = True

        try:
            if self.context:
                await self.context.initialize()

            self.event_queue = await Queue.create(self.event_queue_path)
            self.action_queue = await Queue.create(self.action_queue_path)

            await asyncio.gather(*(collector.start() for collector in self.collectors))

            self._tasks = []
            for i, collector in enumerate(self.collectors):
                self._tasks.append(
                    asyncio.create_task(self._run_collector(collector), name=f"collector_{i}")
                )

            self._tasks.extend([
                asyncio.create_task(self._run_strategies(), name="strategies"),
                asyncio.create_task(self._run_executors(), name="executors"),
            ])
            self._tasks.append(await self.stats.start())

            logger.info(
                f"Started {len(self.collectors)} collectors, {len(self.strategies)} strategies, "
                f"{len(self.executors)} executors (max {self.max_concurrent_events} concurrent events)"
            )

        except Exception as e:
            logger.error(f"Error starting components: {e}")
            await self.stop()
            raise

    async def stop(self, grace_period: float = 5.0, force_timeout: float = 15.0):
        """
        Stop all components, letting in-flight events finish within the grace period

        Args:
            grace_period: Time in seconds to wait for in-progress work to complete
            force_timeout: Maximum time to wait before forcing shutdown
        """
        if not self.running:
            logger.info("Stop called on already stopped SwapWatch")
            return

        self.running = False
        logger.info("Stopping SwapWatch...")

        try:
            await asyncio.wait_for(self._graceful_shutdown(grace_period), timeout=force_timeout)
            logger.info("Graceful shutdown completed")
        except asyncio.TimeoutError:
            logger.warning(
                f"Graceful shutdown timed out after {force_timeout}s, forcing immediate shutdown"
            )
        except Exception as e:
            logger.error(f"Error during graceful shutdown: {e}")

        remaining = list(self._tasks or []) + list(self._event_tasks) + list(self._pending_gets.values())
        for task in remaining:
            if not task.done():
                task.cancel()
        if remaining:
            try:
                await asyncio.wait_for(asyncio.gather(*remaining, return_exceptions=True), timeout=1.0)
            except asyncio.TimeoutError:
                logger.warning("Some tasks did not terminate within timeout period")
        self._tasks = None
        self._pending_gets.clear()

        for executor in self.executors:
            try:
                await executor.close()
            except Exception as e:
                logger.error(f"Error closing executor {executor.name}: {e}")

        if self.context:
            try:
                await self.context.close()
            except Exception as e:
                logger.error(f"Error closing services: {e}")

        logger.info("SwapWatch shutdown complete")

    async def join(self):
        """
        Wait until a core task finishes

        Used in production to keep the main task alive until a signal
        arrives. Tests should call start(), sleep, then stop().
        """
        if not self._tasks:
            logger.warning("SwapWatch.join() called before start() or after stop()")
            return

        core_tasks = [
            task for task in self._tasks if task.get_name() in ("strategies", "executors")
        ]
        if not core_tasks:
            logger.warning("No core tasks found to join")
            return

        try:
            done, _ = await asyncio.wait(core_tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception():
                    logger.error(f"Task {task.get_name()} failed with exception: {task.exception()}")
        except asyncio.CancelledError:
            logger.info("Join operation cancelled")

    async def _graceful_shutdown(self, grace_period: float):
        if self.collectors:
            logger.info(f"Stopping {len(self.collectors)} collectors...")
            await asyncio.gather(
                *(collector.stop() for collector in self.collectors), return_exceptions=True
            )

        logger.info(f"Waiting up to {grace_period}s for in-progress events...")
        deadline = time.time() + grace_period

        if self._event_tasks:
            await asyncio.wait(set(self._event_tasks), timeout=grace_period)

        # Let queued alerts drain while time remains
        while time.time() < deadline:
            actions_pending = self.action_queue.qsize() if self.action_queue else 0
            if not self._event_tasks and actions_pending == 0 and not self._executing:
                logger.info("All in-progress work completed")
                break
            await asyncio.sleep(0.2)

        events_remaining = self.event_queue.qsize() if self.event_queue else 0
        actions_remaining = self.action_queue.qsize() if self.action_queue else 0
        logger.info(
            f"Shutdown progress: {events_remaining} events and {actions_remaining} actions remaining"
        )

        await self.stats.stop()

    async def _next_item(self, name: str, queue: Queue) -> Optional[Any]:
        """
        Wait up to QUEUE_POLL_TIMEOUT for the next queue item

        The pending get survives a timeout and is reused on the next call,
        so an item is never taken off the queue and then dropped.
        """
        task = self._pending_gets.get(name)
        if task is None:
            task = asyncio.create_task(queue.get(), name=f"{name}_get")
            self._pending_gets[name] = task

        done, _ = await asyncio.wait({task}, timeout=QUEUE_POLL_TIMEOUT)
        if not done:
            return None
        del self._pending_gets[name]
        return task.result()

    async def _run_collector(self, collector: Collector):
        collector_name = collector.__class__.__name__
        logger.info(f"Starting collector: {collector_name}")

        while self.running:
            try:
                async for event in collector.events():
                    if not self.running:
                        break
                    try:
                        await self.event_queue.put(event)
                        self.stats.on_event_collected()
                    except Exception as e:
                        logger.error(f"Error queueing event in {collector_name}: {e}")

                if self.running:
                    logger.warning(f"Collector {collector_name} events stream ended, restarting...")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in collector {collector_name}: {e}")

            if self.running:
                await asyncio.sleep(self.collector_restart_delay)

    async def _run_strategies(self):
        logger.info("Starting strategy processor")
        last_idle_log = 0

        try:
            while self.running:
                try:
                    event = await self._next_item("events", self.event_queue)
                except Exception as e:
                    logger.error(f"Error reading from event queue: {e}")
                    await asyncio.sleep(1)
                    continue

                if event is None:
                    now = time.time()
                    if now - last_idle_log > 60:
                        logger.info("Strategy processor is idle - waiting for events...")
                        last_idle_log = now
                    continue

                await self._event_slots.acquire()
                self.stats.on_event_started()
                task = asyncio.create_task(self._process_event(event))
                self._event_tasks.add(task)
                task.add_done_callback(self._event_tasks.discard)

        except asyncio.CancelledError:
            logger.info("Strategy processor task cancelled, shutting down...")
        finally:
            logger.info("Strategy processor stopped")

    async def _process_event(self, event: Event):
        start_time = time.time()
        action_count = 0

        try:
            for strategy in self.strategies:
                strategy_name = strategy.__class__.__name__
                try:
                    actions = await strategy.process_event(event)
                except Exception as e:
                    logger.opt(exception=True).error(
                        f"Error in strategy {strategy_name} for {event.type}: {e}"
                    )
                    continue

                for action in actions:
                    await self.action_queue.put(action)
                    action_count += 1
                    self.stats.on_action_generated()
        except Exception as e:
            logger.error(f"Error queueing actions for {event.type}: {e}")
        finally:
            self._event_slots.release()
            self.stats.on_event_processed()

        latency = time.time() - start_time
        if latency > 5.0:
            logger.warning(f"Slow event processing: {latency:.2f}s, generated {action_count} actions")

    async def _run_executors(self):
        logger.info("Starting action executor")
        last_idle_log = 0

        try:
            # Keep draining after stop() until the grace period ends and the task is cancelled
            while self.running or self.action_queue.qsize() > 0 or self._event_tasks:
                try:
                    action = await self._next_item("actions", self.action_queue)
                except Exception as e:
                    logger.error(f"Error reading from action queue: {e}")
                    await asyncio.sleep(1)
                    continue

                if action is None:
                    now = time.time()
                    if self.running and now - last_idle_log > 60:
                        logger.info("Action executor is idle - waiting for actions...")
                        last_idle_log = now
                    continue

                start_time = time.time()
                self._executing = True
                try:
                    results = await asyncio.gather(
                        *(executor.execute(action) for executor in self.executors),
                        return_exceptions=True,
                    )
                    for executor, result in zip(self.executors, results):
                        if isinstance(result, Exception):
                            logger.error(f"Executor {executor.__class__.__name__} failed: {result}")
                    self.stats.on_action_executed()
                finally:
                    self._executing = False

                latency = time.time() - start_time
                if latency > 5.0:
                    logger.warning(f"Slow action execution: {latency:.2f}s")

        except asyncio.CancelledError:
            logger.info("Action executor task cancelled, shutting down...")
        finally:
            logger.info("Action executor stopped")
