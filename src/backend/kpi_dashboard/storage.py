from __future__ import annotations

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import JSON as SAJSON
from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine

from .classify import record_date
from .configuration import DashboardConfig
from .models import Record, ViewRow
from .repository import RecordRepository
from .views import DEFAULT_CHUNK_SIZE, ViewStore, build_views, run_view

logger = logging.getLogger(__name__)


class SQLViewStore(ViewStore):
    """
    Record documents kept in a SQL table, queried through the configured views.

    Each row stores the record payload plus its calendar date, so key-range
    queries only load the documents that can emit keys inside the range.
    """

    def __init__(
        self,
        engine: Engine,
        config: DashboardConfig,
        table_name: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.engine = engine
        self.views = build_views(config)
        self.chunk_size = chunk_size
        self.metadata = MetaData()
        json_type = SAJSON().with_variant(JSONB, "postgresql")
        self.table = Table(
            table_name or config.database.table_name,
            self.metadata,
            Column("id", String(64), primary_key=True),
            Column("date", String(10), index=True, nullable=False),
            Column("timestamp", Integer, nullable=False),
            Column("document", json_type, nullable=False),
        )
        self.metadata.create_all(self.engine, checkfirst=True)

    def save(self, records: Iterable[Record]) -> int:
        rows = [
            {
                "id": uuid.uuid4().hex,
                "date": record_date(record),
                "timestamp": record.timestamp,
                "document": record.as_payload(),
            }
            for record in records
        ]
        if not rows:
            return 0
        with self.engine.begin() as connection:
            connection.execute(self.table.insert(), rows)
        return len(rows)

    def populate(self, repository: RecordRepository) -> int:
        """
        Copy every record the repository knows about into the store.
        """

        saved = self.save(repository.fetch(None, None))
        logger.info("Stored %s records in %s", saved, self.table.name)
        return saved

    def load(self, start_key: Optional[str] = None, end_key: Optional[str] = None) -> List[Record]:
        query = select(self.table.c.document).order_by(self.table.c.timestamp)
        if start_key is not None:
            query = query.where(self.table.c.date >= start_key)
        if end_key is not None:
            query = query.where(self.table.c.date <= end_key)
        with self.engine.connect() as connection:
            rows = connection.execute(query).fetchall()
        return [Record.from_payload(row.document, timestamp_unit="s") for row in rows]

    def query(
        self,
        view_name: str,
        group: bool = False,
        start_key: Optional[str] = None,
        end_key: Optional[str] = None,
    ) -> Sequence[ViewRow]:
        view = self.views[view_name]
        records = self.load(start_key, end_key)
        logger.debug("Evaluating view %s over %s documents", view_name, len(records))
        return run_view(view, records, group, start_key, end_key, self.chunk_size)


def build_view_store_from_config(config: DashboardConfig) -> Optional[ViewStore]:
    if config.database.url:
        engine = create_engine(config.database.url, future=True)
        return SQLViewStore(engine, config)
    return None
