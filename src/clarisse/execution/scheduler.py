"""Distribution of execution points over worker threads.

Points are dealt round-robin into at most ``threads`` queues. Each queue is
drained start-to-finish by one worker, so points on the same queue run one
after another while different queues run concurrently. :func:`run_queues`
returns only after every worker is done.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def distribute_workload(items: Sequence[T], threads: int) -> list[list[T]]:
    """Deal ``items`` round-robin into ``min(threads, len(items))`` queues.

    Queue sizes differ by at most one and items keep their relative order
    within a queue.

    Raises:
        ValueError: If ``threads`` is less than 1.
    """
    if threads < 1:
        raise ValueError("threads must be >= 1")
    n_queues = min(threads, len(items))
    queues: list[list[T]] = [[] for _ in range(n_queues)]
    for index, item in enumerate(items):
        queues[index % n_queues].append(item)
    return queues


def _drain(queue_index: int, queue: Sequence[T], worker: Callable[[T], object]) -> None:
    logger.debug("Worker %d starting with %d item(s)", queue_index + 1, len(queue))
    for item in queue:
        worker(item)
    logger.debug("Worker %d finished", queue_index + 1)


def run_queues(queues: Sequence[Sequence[T]], worker: Callable[[T], object]) -> None:
    """Run ``worker`` over every queue, one thread per queue, and wait for all.

    ``worker`` is expected to handle its own failures. An exception escaping
    it stops that queue only; it is re-raised here once every worker is done.
    """
    if not queues:
        return
    with ThreadPoolExecutor(max_workers=len(queues), thread_name_prefix="clarisse") as executor:
        futures = [executor.submit(_drain, index, queue, worker) for index, queue in enumerate(queues)]
        wait(futures)
    for future in futures:
        future.result()
