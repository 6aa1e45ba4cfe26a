from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence, Set

from .aggregate import BucketMap, bucketize
from .classify import record_date
from .models import Record

PASSWORD_SET_EVENT = "screen.set_password"

FlowDefinition = Sequence[Sequence[str]]
StepExtractor = Callable[[FlowDefinition, Record], List[str]]


def event_names(record: Record) -> Set[str]:
    return {name for name, _ in record.event_stream}


def completed_steps(flow: FlowDefinition, record: Record) -> List[str]:
    """
    Labels of the flow steps whose event appears anywhere in the record.

    Steps come back in flow order; the order of events in the stream does not
    matter.
    """

    names = event_names(record)
    return [label for label, event in flow if event in names]


def new_user_steps(flow: FlowDefinition, record: Record) -> List[str]:
    # Only users who set a password are new users.
    if PASSWORD_SET_EVENT not in event_names(record):
        return []
    return completed_steps(flow, record)


def step_buckets(
    flow: FlowDefinition,
    records: Iterable[Record],
    extractor: StepExtractor = completed_steps,
) -> BucketMap:
    """
    Bucket records by every step they completed, with a bucket for each step.
    """

    buckets = bucketize(records, lambda record: extractor(flow, record))
    for label, _ in flow:
        buckets.setdefault(label, [])
    return buckets


def step_fractions(flow: FlowDefinition, step_lists: Sequence[Sequence[str]]) -> Dict[str, float]:
    """
    Fraction of users reaching each step, relative to the flow's first step.
    """

    counts: Dict[str, int] = {}
    for steps in step_lists:
        for step in steps:
            counts[step] = counts.get(step, 0) + 1
    first_label = flow[0][0] if flow else None
    denominator = max(counts.get(first_label, 0), 1)
    return {step: count / denominator for step, count in counts.items()}


def step_fractions_by_date(
    flow: FlowDefinition,
    records: Iterable[Record],
    extractor: StepExtractor = new_user_steps,
) -> Dict[str, Dict[str, float]]:
    """
    Per calendar date, the fraction of users reaching each step of ``flow``.

    Only users who completed the first step are counted; dates without any
    such user are left out.
    """

    first_label = flow[0][0] if flow else None
    by_date: Dict[str, List[List[str]]] = {}
    for record in records:
        steps = extractor(flow, record)
        if first_label not in steps:
            continue
        by_date.setdefault(record_date(record), []).append(steps)
    return {date: step_fractions(flow, step_lists) for date, step_lists in by_date.items()}
