from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .classify import TOTAL_SEGMENT, Segmenter, date_key
from .configuration import DashboardConfig
from .errors import AggregationError
from .models import Report, TimeReport
from .reports import (
    assertions_report,
    new_user_report,
    new_user_report_from_rows,
    new_user_segmented_report_from_rows,
    new_user_time_report,
    new_user_time_report_from_rows,
    sites_report,
)
from .repository import RecordRepository
from .views import NEW_USER_TIME_VIEW, NEW_USER_VIEW, ViewStore, segment_view_name

logger = logging.getLogger(__name__)

REPORTS = ("sites", "assertions", "new_user", "new_user_time")


def _date_range(start: Optional[int], end: Optional[int]) -> Tuple[Optional[str], Optional[str]]:
    return (
        date_key(start) if start is not None else None,
        date_key(end) if end is not None else None,
    )


class ReportService:
    """
    Builds the dashboard reports for a time window and an optional segmentation.

    Every request validates the segmentation first, then performs exactly one
    fetch (records from the repository, or rows from the view store when one
    is configured for the report) and runs the pure report pipeline over it.
    """

    def __init__(
        self,
        config: DashboardConfig,
        repository: RecordRepository,
        view_store: Optional[ViewStore] = None,
    ) -> None:
        self.config = config
        self.repository = repository
        self.view_store = view_store
        self.segmenter = Segmenter(config)
        self.new_user_flow = config.flow("new_user")

    def segmentations(self) -> Dict[str, List[str]]:
        return {name: list(segments) for name, segments in self.config.segmentations.items()}

    def sites(self, segmentation: Optional[str] = None, start: Optional[int] = None, end: Optional[int] = None) -> Report:
        self.segmenter.validate(segmentation)
        records = self.repository.fetch(start, end)
        return sites_report(records, self.segmenter, segmentation)

    def assertions(
        self, segmentation: Optional[str] = None, start: Optional[int] = None, end: Optional[int] = None
    ) -> Report:
        self.segmenter.validate(segmentation)
        records = self.repository.fetch(start, end)
        return assertions_report(records, self.segmenter, segmentation)

    def new_user(self, segmentation: Optional[str] = None, start: Optional[int] = None, end: Optional[int] = None) -> Report:
        self.segmenter.validate(segmentation)
        if self.view_store is None:
            records = self.repository.fetch(start, end)
            return new_user_report(records, self.segmenter, segmentation, self.new_user_flow)

        start_key, end_key = _date_range(start, end)
        view_name = NEW_USER_VIEW if segmentation is None else segment_view_name(segmentation)
        rows = self.view_store.query(view_name, group=False, start_key=start_key, end_key=end_key)
        try:
            if segmentation is None:
                return new_user_report_from_rows(rows, self.new_user_flow)
            return new_user_segmented_report_from_rows(rows, self.new_user_flow)
        except AggregationError as exc:
            logger.warning("Unexpected result from view %s: %s", view_name, exc)
            return {TOTAL_SEGMENT: []} if segmentation is None else {}

    def new_user_time(self, start: Optional[int] = None, end: Optional[int] = None) -> TimeReport:
        if self.view_store is None:
            records = self.repository.fetch(start, end)
            return new_user_time_report(records, self.new_user_flow)

        start_key, end_key = _date_range(start, end)
        rows = self.view_store.query(NEW_USER_TIME_VIEW, group=True, start_key=start_key, end_key=end_key)
        try:
            return new_user_time_report_from_rows(rows)
        except AggregationError as exc:
            logger.warning("Unexpected result from view %s: %s", NEW_USER_TIME_VIEW, exc)
            return {}
