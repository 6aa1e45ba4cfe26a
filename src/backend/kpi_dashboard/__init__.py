"""
KPI dashboard reports.

This package turns raw sign-in interaction records into the date- and
segment-bucketed summaries shown on the KPI dashboard, either by scanning
records directly or by merging partial results from precomputed views.
"""

from .configuration import DashboardConfig, load_config  # noqa: F401
from .errors import AggregationError, ValidationError  # noqa: F401
from .models import (  # noqa: F401
    Record,
    StepFractions,
    SummarizedPoint,
    UserAgent,
    ViewRow,
)
from .repository import (  # noqa: F401
    HTTPRecordRepository,
    InMemoryRecordRepository,
    RecordRepository,
    build_repository_from_config,
)
from .service import ReportService  # noqa: F401
from .views import InMemoryViewStore, ViewStore  # noqa: F401
