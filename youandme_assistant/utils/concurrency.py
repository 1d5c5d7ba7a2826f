"""Bounded waits on collaborator calls."""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from ..app.config import Config
from ..app.errors import ExternalFetchError
from .logger import get_logger

T = TypeVar("T")

logger = get_logger("concurrency")

# shared for the process lifetime; workers only ever run collaborator calls
_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="youandme-fetch")


def run_with_timeout(fn: Callable[..., T], *args, timeout: Optional[float] = None, what: str = "fetch", **kwargs) -> T:
    """Run ``fn`` on the fetch pool and wait at most ``timeout`` seconds.

    Timeouts and collaborator exceptions are raised as ExternalFetchError.
    A timed-out call is cancelled if it has not started; a running one is
    abandoned and its result discarded.
    """
    limit = Config.EXTERNAL_FETCH_TIMEOUT if timeout is None else timeout
    future = _executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=limit)
    except FutureTimeout:
        future.cancel()
        logger.warning("%s timed out after %.1fs", what, limit)
        raise ExternalFetchError(f"{what} timed out", detail=f"timeout={limit}")
    except ExternalFetchError:
        raise
    except Exception as e:
        logger.warning("%s failed: %s", what, e)
        raise ExternalFetchError(f"{what} failed", detail=repr(e)) from e
