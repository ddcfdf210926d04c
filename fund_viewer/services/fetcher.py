"""
Concurrent batch fetching for quote and rate lookups.

One request per distinct key runs in a thread pool; the caller waits for the
whole batch. A batch is all-or-nothing: the first failure cancels what is
still queued and raises, and a batch that outlives its timeout raises
FetchTimeoutError instead of hanging.
"""

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, Optional, TypeVar

from fund_viewer.core.exceptions import ExternalFetchError, FetchTimeoutError, FundViewerError
from fund_viewer.utils.logging_config import setup_logger, get_perf_logger

logger = setup_logger(__name__)

T = TypeVar('T')

DEFAULT_TIMEOUT_SECONDS = 30.0


def fetch_batch(
    keys: Iterable[str],
    fetch: Callable[[str], T],
    label: str = "fetch",
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    max_workers: Optional[int] = None
) -> Dict[str, T]:
    """
    Run `fetch(key)` for every distinct key concurrently.

    Args:
        keys: keys to fetch (duplicates are fetched once)
        fetch: callable doing one external lookup
        label: name used in logs and errors
        timeout: seconds the whole batch may take (None waits forever). The
            clock covers every key, including fetches still queued behind
            a max_workers cap
        max_workers: upper bound on concurrent requests; None runs one
            request per distinct key

    Returns:
        {key: result} in the order the keys were given

    Raises:
        ExternalFetchError: if any fetch raised
        FetchTimeoutError: if the batch did not finish within `timeout`
    """
    unique = list(dict.fromkeys(keys))
    if not unique:
        return {}

    workers = len(unique) if max_workers is None else max(1, min(len(unique), max_workers))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"fetch-{label}")

    try:
        with get_perf_logger(logger, f"{label}({len(unique)} keys)", threshold_ms=3000):
            future_to_key = {executor.submit(fetch, key): key for key in unique}
            done, not_done = wait(future_to_key, timeout=timeout, return_when=FIRST_EXCEPTION)

            for future in done:
                error = future.exception()
                if error is None:
                    continue
                key = future_to_key[future]
                logger.error(f"{label} failed for {key}: {error}", extra={'fund_context': {'key': key}})
                if isinstance(error, FundViewerError):
                    raise error
                raise ExternalFetchError(f"{label} failed for {key}: {error}", [key]) from error

            if not_done:
                pending = [future_to_key[f] for f in not_done]
                logger.error(f"{label} timed out after {timeout}s, pending: {pending}")
                raise FetchTimeoutError(f"{label} timed out after {timeout}s for {pending}", pending)

            return {key: future.result() for future, key in future_to_key.items()}
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def fetch_one(
    fetch: Callable[[], T],
    label: str = "fetch",
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS
) -> T:
    """Single external call with the same failure and timeout semantics as a batch."""
    return fetch_batch([label], lambda _: fetch(), label=label, timeout=timeout, max_workers=1)[label]
