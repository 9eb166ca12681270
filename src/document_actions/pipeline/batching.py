"""Group-preserving partition of requests into size-bounded batches."""

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def partition(groups: Sequence[Sequence[T]], max_size: int) -> List[List[T]]:
    """Pack consecutive groups into batches of at most ``max_size`` items.

    Order is preserved and a group is never split across two batches, so
    flattening the result gives back the flattened input.

    Raises:
        ValueError: If ``max_size`` is below 1 or a group is larger than it
    """
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    batches: List[List[T]] = []
    current: List[T] = []
    for group in groups:
        if len(group) > max_size:
            raise ValueError(f"group of {len(group)} items exceeds batch size {max_size}")
        if len(current) + len(group) > max_size:
            batches.append(current)
            current = []
        current.extend(group)
    if current:
        batches.append(current)
    return batches
