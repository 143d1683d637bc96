"""
In-Memory Record Store Implementation

Keeps every table as a list of dicts inside the process. Used in
development mode and by the test-suite. Mirrors what the hosted service
does on insert: assigns a string `id` and an ISO `created_at` when absent.

Records are copied on the way in and out, so callers can never mutate
stored state by accident.
"""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from plattr.core.exceptions import StoreError
from plattr.services.store.base import (
    BaseRecordStore,
    Filters,
    Record,
    SortKey,
    TABLES,
)

logger = logging.getLogger(__name__)


class MemoryRecordStore(BaseRecordStore):
    """
    Dictionary-backed record store.

    Attributes:
        latency: Seconds to sleep before each call, to surface interleavings
        fail_tables: Tables whose every call raises StoreError (test hook)
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.fail_tables: set[str] = set()
        self._tables: dict[str, list[Record]] = {name: [] for name in TABLES}
        logger.info(f"MemoryRecordStore initialized (latency={latency}s)")

    @property
    def provider_name(self) -> str:
        return "memory"

    async def _enter(self, table: str) -> list[Record]:
        # Always suspend, so callers interleave the way they would over a network
        await asyncio.sleep(self.latency)
        if table in self.fail_tables:
            raise StoreError(f"Simulated failure on {table}")
        try:
            return self._tables[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}")

    @staticmethod
    def _matches(row: Record, filters: Optional[Filters]) -> bool:
        return all(row.get(key) == value for key, value in (filters or {}).items())

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        rows = await self._enter(table)
        result = [row for row in rows if self._matches(row, filters)]

        if order:
            sort = SortKey.parse(order)
            result.sort(
                key=lambda row: (row.get(sort.field) is not None, row.get(sort.field)),
                reverse=sort.descending,
            )

        if limit is not None:
            result = result[:limit]

        return copy.deepcopy(result)

    async def insert(self, table: str, values: Record) -> Record:
        rows = await self._enter(table)

        record = copy.deepcopy(values)
        record.setdefault("id", str(uuid.uuid4()))
        record.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        rows.append(record)

        logger.debug(f"Memory: inserted {table}/{record['id']}")
        return copy.deepcopy(record)

    async def update(
        self,
        table: str,
        filters: Filters,
        values: Record,
    ) -> list[Record]:
        rows = await self._enter(table)
        self._require_filters(table, filters)

        updated = []
        for row in rows:
            if self._matches(row, filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table: str, filters: Filters) -> None:
        rows = await self._enter(table)
        self._require_filters(table, filters)
        rows[:] = [row for row in rows if not self._matches(row, filters)]

    async def health_check(self) -> bool:
        return True

    def rows(self, table: str) -> list[Record]:
        """Snapshot of a table, for seeding checks and tests."""
        return copy.deepcopy(self._tables[table])
