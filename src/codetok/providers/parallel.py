"""Bounded-concurrency parsing shared by every provider."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar

if TYPE_CHECKING:
    from codetok.models import SessionInfo

logger = logging.getLogger(__name__)

WORKERS_ENV_VAR = "CODETOK_WORKERS"

# Cap on the CPU-derived default to limit file I/O contention.
MAX_DEFAULT_WORKERS = 8

T = TypeVar("T")


def default_workers() -> int:
    """Return the default worker count.

    Uses ``CODETOK_WORKERS`` when it holds a positive integer, otherwise the
    CPU count capped at 8.
    """
    value = os.environ.get(WORKERS_ENV_VAR, "").strip()
    if value:
        try:
            n = int(value)
        except ValueError:
            n = 0
        if n > 0:
            return n
        logger.debug("Ignoring invalid %s=%r", WORKERS_ENV_VAR, value)

    return max(1, min(os.cpu_count() or 1, MAX_DEFAULT_WORKERS))


def parse_parallel(
    items: Sequence[T],
    max_workers: int,
    parse_fn: Callable[[T], SessionInfo],
) -> list[SessionInfo]:
    """Parse items concurrently, keeping only the successful results.

    At most ``min(max_workers, len(items))`` parses run at any instant.
    An item whose parse raises is dropped without retry. Output order
    follows completion order, not input order.

    Args:
        items: Paths (or other work units) to parse.
        max_workers: Concurrency bound; <= 0 uses ``default_workers()``.
        parse_fn: Parses one item into a SessionInfo, raising on failure.

    Returns:
        SessionInfo for every item that parsed successfully.
    """
    if not items:
        return []
    if max_workers <= 0:
        max_workers = default_workers()
    max_workers = min(max_workers, len(items))

    results: list[SessionInfo] = []
    lock = threading.Lock()

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="codetok-parse") as pool:
        future_to_item = {pool.submit(parse_fn, item): item for item in items}
        for future in as_completed(future_to_item):
            try:
                info = future.result()
            except Exception as e:
                logger.debug("Skipping %s: %s", future_to_item[future], e)
                continue
            with lock:
                results.append(info)

    return results
