from __future__ import annotations

import pytest

from backend.kpi_dashboard.aggregate import count_records, summarize
from backend.kpi_dashboard.funnel import (
    completed_steps,
    new_user_steps,
    step_buckets,
    step_fractions_by_date,
)
from conftest import DAY, JAN_1, NEW_USER_EVENTS

FLOW = [("A", "event.a"), ("B", "event.b"), ("C", "event.c")]


def test_steps_follow_flow_order_not_stream_order(make_record):
    record = make_record(events=["event.b", "noise", "event.a"])

    assert completed_steps(FLOW, record) == ["A", "B"]


def test_record_without_password_is_not_a_new_user(config, make_record):
    flow = config.flow("new_user")
    record = make_record(events=["screen.rp_info", "user.user_staged", "user.user_confirmed", "assertion_generated"])

    assert completed_steps(flow, record) != []
    assert new_user_steps(flow, record) == []


def test_new_user_steps(config, make_record):
    flow = config.flow("new_user")
    record = make_record(events=["screen.rp_info", "screen.set_password", "user.user_staged"])

    assert new_user_steps(flow, record) == ["Password set", "Account staged"]


def test_steps_nobody_completed_still_show_up(make_record):
    records = [make_record(events=["event.a"]), make_record(events=["event.a", "event.b"])]

    points = summarize(step_buckets(FLOW, records), count_records)

    assert [(point.category, point.value) for point in points] == [("A", 2), ("B", 1), ("C", 0)]


def test_step_buckets_with_no_records():
    assert step_buckets(FLOW, []) == {"A": [], "B": [], "C": []}


def test_step_fractions_by_date(config, make_record):
    flow = config.flow("new_user")
    records = [
        make_record(timestamp=JAN_1, events=NEW_USER_EVENTS),
        make_record(timestamp=JAN_1 + 60, events=["screen.set_password"]),
        make_record(timestamp=JAN_1 + 120, events=["screen.rp_info"]),
        make_record(timestamp=JAN_1 + DAY, events=["screen.set_password", "user.user_staged"]),
    ]

    fractions = step_fractions_by_date(flow, records)

    assert fractions == {
        "2024-01-01": {
            "Password set": 1.0,
            "Account staged": 0.5,
            "Email confirmed": 0.5,
            "Logged in": 0.5,
        },
        "2024-01-02": {"Password set": 1.0, "Account staged": 1.0},
    }


def test_step_fractions_skip_dates_without_first_step(make_record):
    records = [make_record(events=["event.b"])]

    assert step_fractions_by_date(FLOW, records, completed_steps) == {}


def test_step_fractions_are_relative_to_first_step(make_record):
    records = [
        make_record(events=["event.a", "event.b"]),
        make_record(events=["event.a"]),
        make_record(events=["event.a", "event.b", "event.c"]),
        make_record(events=["event.a"]),
    ]

    fractions = step_fractions_by_date(FLOW, records, completed_steps)["2024-01-01"]

    assert fractions == {"A": 1.0, "B": pytest.approx(0.5), "C": pytest.approx(0.25)}
