from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence, Tuple

from .aggregate import BucketMap, bucketize
from .configuration import DashboardConfig
from .errors import ValidationError
from .models import Record

OTHER_SEGMENT = "Other"
TOTAL_SEGMENT = "Total"


def date_key(timestamp: int) -> str:
    """
    Calendar date (UTC) a Unix timestamp in seconds falls on, as YYYY-MM-DD.
    """

    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def record_date(record: Record) -> str:
    return date_key(record.timestamp)


def segment_value(segmentation: str, record: Record, aliases: Mapping[str, str]) -> Optional[str]:
    value: Optional[str] = None
    if segmentation == "OS":
        value = record.user_agent.os if record.user_agent else None
    elif segmentation == "Browser":
        value = record.user_agent.browser if record.user_agent else None
    elif segmentation == "Locale":
        value = record.locale

    if value is not None and value in aliases:
        value = aliases[value]
    return value


def classify_into_segment(
    segmentation: Optional[str],
    known_segments: Sequence[str],
    record: Record,
    aliases: Mapping[str, str],
) -> str:
    if segmentation is None:
        return TOTAL_SEGMENT
    value = segment_value(segmentation, record, aliases)
    return value if value in known_segments else OTHER_SEGMENT


class Segmenter:
    """
    Splits records along one of the configured segmentations.
    """

    def __init__(self, config: DashboardConfig) -> None:
        self.segmentations: Mapping[str, Tuple[str, ...]] = config.segmentations
        self.aliases: Mapping[str, str] = config.aliases

    def validate(self, segmentation: Optional[str]) -> None:
        if segmentation is not None and segmentation not in self.segmentations:
            raise ValidationError(f"Invalid segmentation: {segmentation!r}")

    def classify(self, segmentation: Optional[str], record: Record) -> str:
        known = self.segmentations.get(segmentation, ()) if segmentation else ()
        return classify_into_segment(segmentation, known, record, self.aliases)

    def segment(self, segmentation: Optional[str], records: Sequence[Record]) -> BucketMap:
        self.validate(segmentation)
        if segmentation is None:
            return {TOTAL_SEGMENT: list(records)}
        return bucketize(records, lambda record: self.classify(segmentation, record))
