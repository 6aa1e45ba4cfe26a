from __future__ import annotations

import io
import json

import pytest

from backend.kpi_dashboard import repository as repository_module
from backend.kpi_dashboard.configuration import DataRemoteConfig
from backend.kpi_dashboard.dataset import RecordDataset
from backend.kpi_dashboard.models import Record, UserAgent
from backend.kpi_dashboard.repository import HTTPRecordRepository, InMemoryRecordRepository
from conftest import DAY, JAN_1, build_record

RAW = {
    "event_stream": [["screen.rp_info", 166], ["screen.set_password", 46965]],
    "timestamp": JAN_1 * 1000 + 999,
    "lang": "en-us",
    "screen_size": {"width": 1024, "height": 768},
    "user_agent": {"os": "Linux", "browser": "Firefox", "version": 9001},
    "number_sites_logged_in": 4,
}


def test_record_from_payload_converts_milliseconds():
    record = Record.from_payload(RAW)

    assert record == Record(
        timestamp=JAN_1,
        event_stream=(("screen.rp_info", 166), ("screen.set_password", 46965)),
        locale="en-us",
        user_agent=UserAgent(os="Linux", browser="Firefox"),
        number_sites_logged_in=4,
    )


def test_record_from_payload_in_seconds():
    assert Record.from_payload({"timestamp": JAN_1}, timestamp_unit="s").timestamp == JAN_1


def test_record_from_payload_rejects_milliseconds_declared_as_seconds():
    with pytest.raises(ValueError, match="too large to be in seconds"):
        Record.from_payload({"timestamp": 1704067200000}, timestamp_unit="s")


def test_record_from_payload_unwraps_documents():
    assert Record.from_payload({"id": "abc", "value": RAW}) == Record.from_payload(RAW)


def test_record_from_payload_defaults_missing_fields():
    record = Record.from_payload({"timestamp": JAN_1 * 1000})

    assert record.user_agent is None
    assert record.locale is None
    assert record.event_stream == ()
    assert record.number_sites_logged_in == 0


def test_in_memory_fetch_is_inclusive():
    records = [build_record(timestamp=JAN_1 + offset) for offset in (DAY, 0, 50, 2 * DAY)]
    repository = InMemoryRecordRepository(records)

    fetched = repository.fetch(JAN_1, JAN_1 + DAY)

    assert [record.timestamp for record in fetched] == [JAN_1, JAN_1 + 50, JAN_1 + DAY]
    assert len(repository.fetch()) == 4


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def test_http_repository_normalizes_and_filters(monkeypatch):
    payloads = [RAW, dict(RAW, timestamp=(JAN_1 + 2 * DAY) * 1000)]
    calls = []

    def fake_urlopen(url, timeout):
        calls.append((url, timeout))
        return _FakeResponse(json.dumps(payloads).encode("utf-8"))

    monkeypatch.setattr(repository_module.urllib.request, "urlopen", fake_urlopen)
    repository = HTTPRecordRepository(DataRemoteConfig(url="http://data.example/data", timeout_seconds=5))

    fetched = repository.fetch(None, JAN_1 + DAY)

    assert calls == [("http://data.example/data", 5)]
    assert [record.timestamp for record in fetched] == [JAN_1]


def test_http_repository_rejects_non_array(monkeypatch):
    monkeypatch.setattr(
        repository_module.urllib.request,
        "urlopen",
        lambda url, timeout: _FakeResponse(b'{"error": "nope"}'),
    )

    with pytest.raises(ValueError):
        HTTPRecordRepository(DataRemoteConfig()).fetch()


def test_segment_value_counts():
    dataset = RecordDataset(
        records=[
            build_record(os="Windows NT 6.1", browser="Firefox", locale="en-us"),
            build_record(os="Linux", browser="Firefox"),
            build_record(locale="en-gb"),
        ]
    )

    counts = dataset.segment_value_counts(["OS", "Browser", "Locale"], {"Windows NT 6.1": "Windows 7"})

    assert counts == {
        "OS": {"Windows 7": 1, "Linux": 1},
        "Browser": {"Firefox": 2},
        "Locale": {"en-us": 1, "en-gb": 1},
    }
