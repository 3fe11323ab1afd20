"""
Pipeline component base classes

Collectors, strategies and executors register under their
`__component_name__` so the builder can create them from the names listed
in the configuration. Each kind keeps its own registry, so a collector and
an executor may share a name.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterable, ClassVar, Dict, List, Type, TypeVar

from .actions import Action
from .events import Event
from ..logger import logger

T = TypeVar('T', bound='Component')


class Component(ABC):
    """Base class of every pipeline component"""

    _registry: ClassVar[Dict[str, type]] = {}
    _component_name: ClassVar[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        component_name = getattr(cls, '__component_name__', None)
        if not component_name:
            return
        # The nearest class that owns a registry is the component kind
        owner = next(base for base in cls.__mro__[1:] if '_registry' in base.__dict__)
        owner._registry[component_name] = cls
        cls._component_name = component_name

    @classmethod
    def create(cls: Type[T], name: str, **kwargs) -> T:
        """
        Instantiate the component registered as `name`

        Raises:
            ValueError: nothing of this kind is registered under `name`
        """
        component_class = cls._registry.get(name)
        if component_class is None:
            known = ", ".join(sorted(cls._registry)) or "none"
            raise ValueError(f"No {cls.__name__} registered with name: {name} (known: {known})")

        try:
            return component_class(**kwargs)
        except Exception as e:
            logger.error(f"Error creating {cls.__name__.lower()} {name}: {e}")
            raise

    @property
    def name(self) -> str:
        return self._component_name or self.__class__.__name__


class Collector(Component):
    """
    Source of chain events

    `events()` is consumed by the pipeline for as long as it runs; it
    should end once `stop()` clears the running flag.
    """
    _registry: ClassVar[Dict[str, Type["Collector"]]] = {}

    def __init__(self):
        self._running = False
        self._started = False

    async def start(self):
        if self._started:
            return
        self._started = True
        self._running = True
        try:
            await self._start()
        except Exception as e:
            self._started = False
            self._running = False
            logger.error(f"Error starting collector {self.name}: {e}")
            raise
        logger.info(f"Collector {self.name} started")

    async def stop(self):
        if not self._started:
            return
        self._running = False
        try:
            await self._stop()
        except Exception as e:
            logger.error(f"Error stopping collector {self.name}: {e}")
            raise
        self._started = False
        logger.info(f"Collector {self.name} stopped")

    async def _start(self):
        """Hook for opening connections and spawning background tasks"""

    async def _stop(self):
        """Hook for releasing what `_start` acquired"""

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def events(self) -> AsyncIterable[Event]:
        """Yield events until stopped"""


class Strategy(Component):
    """Turns one event into zero or more actions"""
    _registry: ClassVar[Dict[str, Type["Strategy"]]] = {}

    @abstractmethod
    async def process_event(self, event: Event) -> List[Action]:
        pass


class Executor(Component):
    """Carries out actions, e.g. delivers alerts"""
    _registry: ClassVar[Dict[str, Type["Executor"]]] = {}

    @abstractmethod
    async def execute(self, action: Action) -> None:
        pass

    async def close(self) -> None:
        """Release resources on shutdown"""
