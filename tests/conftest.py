from __future__ import annotations

from typing import Iterable, Optional

import pytest

from backend.kpi_dashboard.configuration import DashboardConfig
from backend.kpi_dashboard.models import Record, UserAgent

# 2024-01-01T00:00:00Z
JAN_1 = 1704067200
DAY = 24 * 60 * 60

NEW_USER_EVENTS = (
    "screen.rp_info",
    "screen.set_password",
    "user.user_staged",
    "user.user_confirmed",
    "assertion_generated",
)


def build_record(
    timestamp: int = JAN_1,
    events: Iterable[str] = (),
    os: Optional[str] = None,
    browser: Optional[str] = None,
    locale: Optional[str] = None,
    sites: int = 0,
) -> Record:
    user_agent = UserAgent(os=os, browser=browser) if (os or browser) else None
    return Record(
        timestamp=timestamp,
        event_stream=tuple((name, index * 100) for index, name in enumerate(events)),
        locale=locale,
        user_agent=user_agent,
        number_sites_logged_in=sites,
    )


@pytest.fixture
def config() -> DashboardConfig:
    return DashboardConfig()


@pytest.fixture
def make_record():
    return build_record
