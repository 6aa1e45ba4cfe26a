"""
Report pipelines.

Each report splits records by segment, buckets every segment by date or by
funnel step, and summarizes every bucket to one number. The ``*_from_rows``
variants build the same reports from precomputed view rows instead.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .aggregate import BucketMap, bucketize, count_records, median, summarize
from .classify import TOTAL_SEGMENT, Segmenter, record_date
from .errors import AggregationError
from .funnel import FlowDefinition, new_user_steps, step_buckets, step_fractions_by_date
from .models import Record, Report, StepFractions, SummarizedPoint, TimeReport, ViewRow

Aggregator = Callable[[Sequence[Record]], BucketMap]
Summarizer = Callable[[Sequence[Record]], float]


def by_date(records: Sequence[Record]) -> BucketMap:
    return bucketize(records, record_date)


def summary_report(
    records: Sequence[Record],
    segmenter: Segmenter,
    segmentation: Optional[str],
    aggregator: Aggregator,
    summarizer: Summarizer,
) -> Report:
    segmented = segmenter.segment(segmentation, records)
    return {segment: summarize(aggregator(bucket), summarizer) for segment, bucket in segmented.items()}


def median_sites(records: Sequence[Record]) -> float:
    return median(record.number_sites_logged_in for record in records)


def sites_report(records: Sequence[Record], segmenter: Segmenter, segmentation: Optional[str]) -> Report:
    """Median number of sites users are logged in to, per day."""
    return summary_report(records, segmenter, segmentation, by_date, median_sites)


def assertions_report(records: Sequence[Record], segmenter: Segmenter, segmentation: Optional[str]) -> Report:
    # One record per login attempt, so the record count approximates the
    # number of assertions generated.
    return summary_report(records, segmenter, segmentation, by_date, count_records)


def new_user_report(
    records: Sequence[Record],
    segmenter: Segmenter,
    segmentation: Optional[str],
    flow: FlowDefinition,
) -> Report:
    """Number of new users reaching each step of the sign-up flow."""
    return summary_report(
        records,
        segmenter,
        segmentation,
        lambda bucket: step_buckets(flow, bucket, new_user_steps),
        count_records,
    )


def pivot_by_step(by_date: Mapping[str, Mapping[str, float]]) -> TimeReport:
    """
    Turn {date: {step: value}} into {step: {date: value}}.
    """

    pivoted: TimeReport = {}
    for date in sorted(by_date):
        for step, value in by_date[date].items():
            pivoted.setdefault(step, {})[date] = value
    return pivoted


def new_user_time_report(records: Sequence[Record], flow: FlowDefinition) -> TimeReport:
    return pivot_by_step(step_fractions_by_date(flow, records, new_user_steps))


def points_from_counts(counts: Mapping[str, int], flow: FlowDefinition) -> List[SummarizedPoint]:
    filled = {label: 0 for label, _ in flow}
    filled.update(counts)
    return [SummarizedPoint(category=step, value=filled[step]) for step in sorted(filled)]


def _single_row(rows: Sequence[ViewRow]) -> Optional[ViewRow]:
    if len(rows) > 1:
        raise AggregationError(f"expected at most one row from an ungrouped view, got {len(rows)}")
    return rows[0] if rows else None


def _mapping_value(row: ViewRow) -> Mapping:
    if not isinstance(row.value, Mapping):
        raise AggregationError(f"unexpected view value {row.value!r}")
    return row.value


def new_user_report_from_rows(rows: Sequence[ViewRow], flow: FlowDefinition) -> Report:
    row = _single_row(rows)
    counts = _mapping_value(row) if row is not None else {}
    return {TOTAL_SEGMENT: points_from_counts(counts, flow)}


def new_user_segmented_report_from_rows(rows: Sequence[ViewRow], flow: FlowDefinition) -> Report:
    row = _single_row(rows)
    if row is None:
        return {}
    nested = _mapping_value(row)
    report: Report = {}
    for segment, counts in nested.items():
        if not isinstance(counts, Mapping):
            raise AggregationError(f"unexpected counts for segment {segment!r}: {counts!r}")
        report[segment] = points_from_counts(counts, flow)
    return report


def new_user_time_report_from_rows(rows: Sequence[ViewRow]) -> TimeReport:
    fractions_by_date: Dict[str, Dict[str, float]] = {}
    for row in rows:
        value = row.value
        if isinstance(value, Mapping):
            try:
                value = StepFractions.from_dict(value)
            except (TypeError, ValueError) as exc:
                raise AggregationError(f"unexpected partial for {row.key!r}: {value!r}") from exc
        if not isinstance(value, StepFractions) or row.key is None:
            raise AggregationError(f"unexpected row in grouped view: {row!r}")
        fractions_by_date[row.key] = value.steps
    return pivot_by_step(fractions_by_date)
