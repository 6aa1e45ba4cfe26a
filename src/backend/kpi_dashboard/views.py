"""
Precomputed views over stored records.

A view pairs a map function (record -> keyed values) with a reduce function
(values -> partial aggregate) and a rereduce function (partials -> partial).
Views are built once from the configuration; the store evaluates them by
reducing chunks of mapped values and merging the chunk results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .classify import Segmenter, record_date
from .configuration import DashboardConfig
from .funnel import new_user_steps
from .models import Record, ViewRow
from .reduce import (
    reduce_counts,
    reduce_fractions,
    reduce_nested_counts,
    rereduce_counts,
    rereduce_fractions,
    rereduce_nested_counts,
)

NEW_USER_VIEW = "new_user"
NEW_USER_TIME_VIEW = "new_user_time"
NEW_USER_SEGMENT_VIEW_PREFIX = "new_user_by_"

DEFAULT_CHUNK_SIZE = 64


@dataclass(frozen=True)
class ViewDefinition:
    map: Callable[[Record], Iterable[Tuple[str, Any]]]
    reduce: Callable[[Sequence[Any]], Any]
    rereduce: Callable[[Iterable[Any]], Any]


def segment_view_name(segmentation: str) -> str:
    return f"{NEW_USER_SEGMENT_VIEW_PREFIX}{segmentation}"


def build_views(config: DashboardConfig) -> Dict[str, ViewDefinition]:
    flow = config.flow("new_user")
    first_step = flow[0][0] if flow else None
    segmenter = Segmenter(config)

    def map_new_user(record: Record) -> Iterator[Tuple[str, Any]]:
        steps = new_user_steps(flow, record)
        if steps:
            yield record_date(record), steps

    def map_new_user_time(record: Record) -> Iterator[Tuple[str, Any]]:
        steps = new_user_steps(flow, record)
        if first_step in steps:
            yield record_date(record), steps

    def segment_mapper(segmentation: str) -> Callable[[Record], Iterator[Tuple[str, Any]]]:
        def map_segment(record: Record) -> Iterator[Tuple[str, Any]]:
            segment = segmenter.classify(segmentation, record)
            yield record_date(record), (segment, new_user_steps(flow, record))

        return map_segment

    views = {
        NEW_USER_VIEW: ViewDefinition(map=map_new_user, reduce=reduce_counts, rereduce=rereduce_counts),
        NEW_USER_TIME_VIEW: ViewDefinition(
            map=map_new_user_time, reduce=reduce_fractions, rereduce=rereduce_fractions
        ),
    }
    for segmentation in config.segmentations:
        views[segment_view_name(segmentation)] = ViewDefinition(
            map=segment_mapper(segmentation),
            reduce=reduce_nested_counts,
            rereduce=rereduce_nested_counts,
        )
    return views


def _chunks(values: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for index in range(0, len(values), size):
        yield values[index : index + size]


def run_view(
    view: ViewDefinition,
    records: Iterable[Record],
    group: bool = False,
    start_key: Optional[str] = None,
    end_key: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> List[ViewRow]:
    """
    Evaluate ``view`` over ``records``.

    Keys are compared inclusively against ``start_key``/``end_key``. With
    ``group`` the result has one row per key in key order; without it there is
    at most one row with key ``None``.
    """

    emitted: Dict[str, List[Any]] = {}
    for record in records:
        for key, value in view.map(record):
            if start_key is not None and key < start_key:
                continue
            if end_key is not None and key > end_key:
                continue
            emitted.setdefault(key, []).append(value)

    def reduce_all(values: Sequence[Any]) -> Any:
        return view.rereduce(view.reduce(chunk) for chunk in _chunks(values, max(1, chunk_size)))

    if group:
        return [ViewRow(key=key, value=reduce_all(emitted[key])) for key in sorted(emitted)]
    if not emitted:
        return []
    # Reduce each key's values separately, then merge across keys.
    partials = [reduce_all(emitted[key]) for key in sorted(emitted)]
    return [ViewRow(key=None, value=view.rereduce(partials))]


class ViewStore:
    """
    Interface for querying precomputed views.
    """

    def query(
        self,
        view_name: str,
        group: bool = False,
        start_key: Optional[str] = None,
        end_key: Optional[str] = None,
    ) -> Sequence[ViewRow]:
        raise NotImplementedError


class InMemoryViewStore(ViewStore):
    def __init__(self, config: DashboardConfig, records: Iterable[Record] = (), chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.views = build_views(config)
        self.records: List[Record] = list(records)
        self.chunk_size = chunk_size

    def populate(self, records: Iterable[Record]) -> int:
        added = list(records)
        self.records.extend(added)
        return len(added)

    def query(
        self,
        view_name: str,
        group: bool = False,
        start_key: Optional[str] = None,
        end_key: Optional[str] = None,
    ) -> Sequence[ViewRow]:
        view = self.views[view_name]
        return run_view(view, self.records, group, start_key, end_key, self.chunk_size)
