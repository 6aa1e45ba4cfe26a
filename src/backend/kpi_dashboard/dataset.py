from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Sequence

from .classify import segment_value
from .models import Record


@dataclass
class RecordDataset:
    records: Sequence[Record]

    def __post_init__(self) -> None:
        self.records = tuple(sorted(self.records, key=lambda record: record.timestamp))

    def iter_records(self, start: Optional[int] = None, end: Optional[int] = None) -> Iterator[Record]:
        """
        Yield records whose timestamp falls inside ``[start, end]``.

        Both bounds are inclusive seconds since epoch; ``None`` leaves that
        side open.
        """

        for record in self.records:
            if start is not None and record.timestamp < start:
                continue
            if end is not None and record.timestamp > end:
                continue
            yield record

    def between(self, start: Optional[int] = None, end: Optional[int] = None) -> Sequence[Record]:
        return tuple(self.iter_records(start, end))

    def segment_value_counts(
        self,
        segmentations: Sequence[str],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Dict[str, int]]:
        """
        Count how often each raw value of each segmentation occurs.

        Handy for deciding which segments are worth listing in the config.
        Records without a value for a segmentation are skipped.
        """

        totals: Dict[str, Counter] = {name: Counter() for name in segmentations}
        for record in self.records:
            for name in segmentations:
                value = segment_value(name, record, aliases or {})
                if value is not None:
                    totals[name][value] += 1
        return {name: dict(counter.most_common()) for name, counter in totals.items()}
