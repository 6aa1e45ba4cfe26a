from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

from .models import SummarizedPoint

T = TypeVar("T")

Category = Union[str, Iterable[str], None]
BucketMap = Dict[str, List[T]]


def bucketize(records: Iterable[T], classify: Callable[[T], Category]) -> BucketMap:
    """
    Place records into buckets keyed by the category ``classify`` returns.

    ``classify`` may return a single category or a collection of them; in the
    latter case the record lands in every returned bucket (funnel steps work
    this way). ``None`` or an empty collection drops the record.
    """

    buckets: BucketMap = {}
    for record in records:
        categories = classify(record)
        if categories is None:
            continue
        if isinstance(categories, str):
            categories = (categories,)
        for category in categories:
            buckets.setdefault(category, []).append(record)
    return buckets


def summarize(buckets: BucketMap, reduce_fn: Callable[[Sequence[T]], float]) -> List[SummarizedPoint]:
    return [
        SummarizedPoint(category=category, value=reduce_fn(buckets[category]))
        for category in sorted(buckets)
    ]


def median(values: Iterable[float], default: Optional[float] = 0) -> Optional[float]:
    """
    Middle value of ``values``, or the mean of the two middle values.

    An empty input yields ``default`` (0 unless told otherwise).
    """

    ordered = sorted(values)
    if not ordered:
        return default
    center = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[center]
    return (ordered[center - 1] + ordered[center]) / 2


def count_records(records: Sequence[object]) -> int:
    return len(records)
