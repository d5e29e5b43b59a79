"""
Performance timing utilities for debugging.

Measures execution time of layout recomputes and pipeline calls when the
TT_DEBUG environment variable is set.
"""

import functools
import logging
import os
import time
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def timing_enabled() -> bool:
    return os.getenv("TT_DEBUG") == "1"


def timer(func: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator that logs execution time when TT_DEBUG=1.

    The flag is read on each call so `--debug` on the CLI takes effect after
    import.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if not timing_enabled():
            return func(*args, **kwargs)

        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"[TT_DEBUG] {func.__qualname__}: {elapsed_ms:.2f}ms")

        return result

    return wrapper
