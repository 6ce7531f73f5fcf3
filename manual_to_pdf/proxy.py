"""Round-robin selection over the configured proxy pool."""

from typing import Optional, Sequence, Tuple


def next_proxy(index: int, pool: Sequence[str]) -> Optional[Tuple[str, int]]:
    """Return the proxy at `index` and the index of the one after it.

    Returns None (no proxy applied) for an empty pool or an index outside
    the pool.
    """
    if not pool or index < 0 or index >= len(pool):
        return None
    return pool[index], (index + 1) % len(pool)
