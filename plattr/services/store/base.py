"""
Record Store Abstract Base Class

Defines the interface contract for the remote data service. The storefront
only ever needs four primitives against a named table:

    - select: field-equality filters, optional sort key, optional row limit
    - insert: one record in, the stored record (with id) back
    - update: field-equality filters plus new values
    - delete: field-equality filters

Design Pattern: Strategy Pattern
    - MemoryRecordStore for development and tests
    - SupabaseRecordStore for the hosted PostgREST service
    - SqlRecordStore for a directly reachable PostgreSQL database

Every implementation raises StoreError for any failure it encounters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from plattr.core.exceptions import StoreError

Record = dict[str, Any]
Filters = dict[str, Any]

TABLES = (
    "users",
    "otp_verifications",
    "dishes",
    "addresses",
    "cart_items",
    "orders",
    "order_items",
)


@dataclass(frozen=True)
class SortKey:
    """
    Parsed `field.desc` / `field.asc` sort expression.

    Attributes:
        field: Column to sort by
        descending: True for `.desc`
    """
    field: str
    descending: bool = False

    @classmethod
    def parse(cls, expression: str) -> "SortKey":
        field, _, direction = expression.partition(".")
        direction = direction or "asc"
        if not field or direction not in ("asc", "desc"):
            raise StoreError(f"Invalid sort expression: {expression!r}")
        return cls(field=field, descending=direction == "desc")

    def to_param(self) -> str:
        return f"{self.field}.{'desc' if self.descending else 'asc'}"


class BaseRecordStore(ABC):
    """
    Abstract base class for record stores.

    Example:
        >>> store = get_record_store()
        >>> rows = await store.select(
        ...     "cart_items",
        ...     filters={"user_id": actor.id},
        ...     order="created_at.desc",
        ...     limit=1,
        ... )
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the store provider.

        Returns:
            str: Provider name (e.g., "memory", "supabase", "sql")
        """
        pass

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """
        Fetch records matching every filter.

        Args:
            table: Table name
            filters: Field-equality filters (all must match)
            order: Sort expression, `field.desc` or `field.asc`
            limit: Maximum number of rows to return

        Returns:
            list of records (possibly empty)
        """
        pass

    @abstractmethod
    async def insert(self, table: str, values: Record) -> Record:
        """
        Insert one record.

        Returns:
            The stored record, including the store-assigned `id`
            and `created_at`
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        filters: Filters,
        values: Record,
    ) -> list[Record]:
        """Update matching records, returning them after the update."""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> None:
        """Delete matching records."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the store.

        Returns:
            bool: True if the store is reachable
        """
        pass

    async def close(self) -> None:
        """Release transport resources. Optional for implementations."""
        return None

    @staticmethod
    def _require_filters(table: str, filters: Optional[Filters]) -> Filters:
        # Unfiltered update/delete would touch the whole table
        if not filters:
            raise StoreError(f"Refusing unfiltered write on {table}")
        return filters
