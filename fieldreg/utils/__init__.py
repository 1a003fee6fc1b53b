"""fieldreg Utilities Module"""

from .logging_config import setup_logging, get_logger, Timer
from .device import DTYPE, get_device, as_tensor, as_points, as_vector

__all__ = [
    "setup_logging",
    "get_logger",
    "Timer",
    "DTYPE",
    "get_device",
    "as_tensor",
    "as_points",
    "as_vector",
]
