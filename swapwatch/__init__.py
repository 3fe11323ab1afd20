from . import collectors
from . import executors
from . import strategies

from .core.swapwatch import SwapWatch
from .core.builder import SwapWatchBuilder
from .config import Config
