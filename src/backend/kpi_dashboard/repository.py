from __future__ import annotations

import json
import logging
import urllib.request
from typing import Any, Iterable, Mapping, Optional, Sequence

from .configuration import DashboardConfig, DataRemoteConfig
from .dataset import RecordDataset
from .models import Record

logger = logging.getLogger(__name__)


class RecordRepository:
    """
    Interface for loading interaction records.

    Implementations return records whose timestamp lies in the inclusive
    ``[start, end]`` window (seconds since epoch, ``None`` for open bounds),
    already normalized to seconds. Failures are raised to the caller as-is.
    """

    def fetch(self, start: Optional[int] = None, end: Optional[int] = None) -> Sequence[Record]:
        raise NotImplementedError


class InMemoryRecordRepository(RecordRepository):
    def __init__(self, records: Iterable[Record]):
        self.dataset = RecordDataset(records=list(records))

    def fetch(self, start: Optional[int] = None, end: Optional[int] = None) -> Sequence[Record]:
        return self.dataset.between(start, end)


class HTTPRecordRepository(RecordRepository):
    """
    Load records from the data remote, a JSON endpoint returning an array of
    raw interaction payloads.

    The remote has no notion of time windows, so every fetch downloads the
    full set and filters locally.
    """

    def __init__(self, config: DataRemoteConfig):
        self.config = config

    def fetch(self, start: Optional[int] = None, end: Optional[int] = None) -> Sequence[Record]:
        payloads = self._download()
        records = [Record.from_payload(payload, self.config.timestamp_unit) for payload in payloads]
        return RecordDataset(records=records).between(start, end)

    def _download(self) -> Sequence[Mapping[str, Any]]:
        logger.debug("Fetching records from %s", self.config.url)
        with urllib.request.urlopen(self.config.url, timeout=self.config.timeout_seconds) as response:
            body = response.read().decode("utf-8")
        payloads = json.loads(body)
        if not isinstance(payloads, list):
            raise ValueError(f"Expected a JSON array from {self.config.url}, got {type(payloads).__name__}")
        return payloads


def build_repository_from_config(config: DashboardConfig) -> RecordRepository:
    return HTTPRecordRepository(config.data_remote)
