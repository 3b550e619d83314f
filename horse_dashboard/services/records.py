"""
Record Source — reads interaction records from the Supabase records table.

Every failure (client creation, transport, auth, query, malformed rows) is
surfaced as a single SourceError. Nothing here retries or caches.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Sequence

from pydantic import ValidationError
from supabase import AsyncClient, acreate_client

from horse_dashboard.config import settings
from horse_dashboard.models.records import REQUIRED_COLUMNS, InteractionRecord

logger = logging.getLogger(__name__)

SortOrder = Literal["asc", "desc"]


class SourceError(Exception):
    """The record source could not return records."""


# ---------------------------------------------------------------------------
# Supabase client — lazily created singleton
# ---------------------------------------------------------------------------

_client: AsyncClient | None = None


async def get_supabase_client() -> AsyncClient:
    """Get or create the async Supabase client."""
    global _client
    if _client is None:
        try:
            _client = await acreate_client(settings.supabase_url, settings.supabase_key)
        except Exception as e:
            logger.error("Failed to create Supabase client: %s", e)
            raise SourceError("Could not connect to record source") from e
    return _client


async def close_supabase() -> None:
    """Drop the Supabase client (call on shutdown)."""
    global _client
    _client = None


# ---------------------------------------------------------------------------
# Record source
# ---------------------------------------------------------------------------


def _projection(columns: Sequence[str] | None) -> str:
    """Build the select clause, always including id and created_at."""
    if not columns:
        return "*"
    selected = list(REQUIRED_COLUMNS)
    for column in columns:
        if column not in selected:
            selected.append(column)
    return ", ".join(selected)


def _parse_rows(rows: list[dict[str, Any]]) -> list[InteractionRecord]:
    try:
        return [InteractionRecord.model_validate(row) for row in rows]
    except ValidationError as e:
        logger.error("Malformed record row from %s: %s", settings.records_table, e)
        raise SourceError("Record source returned malformed rows") from e


class RecordSource:
    """Fetches snapshots of the records table."""

    def __init__(self, table: str | None = None) -> None:
        self.table = table or settings.records_table

    async def fetch_all(
        self,
        columns: Sequence[str] | None = None,
        order: SortOrder | None = None,
    ) -> list[InteractionRecord]:
        """Fetch every record, optionally projected and ordered by created_at.

        Reads the table in ``records_page_size`` chunks until a short page,
        since the backend caps rows per response. Raises SourceError on any
        failure.
        """
        sb = await get_supabase_client()
        select = _projection(columns)
        page_size = settings.records_page_size
        logger.debug("Fetching %s (select=%s, order=%s)", self.table, select, order)

        rows: list[dict[str, Any]] = []
        start = 0
        try:
            while True:
                # Fresh builder per page; range() on a reused one stacks params
                query = sb.table(self.table).select(select)
                if order is not None:
                    query = query.order("created_at", desc=(order == "desc"))
                # id breaks created_at ties so rows can't shift between pages
                query = query.order("id")
                result = await query.range(start, start + page_size - 1).execute()

                batch: list[dict[str, Any]] = result.data or []
                rows.extend(batch)
                if len(batch) < page_size:
                    break
                start += page_size
        except Exception as e:
            logger.exception("Failed to fetch records from %s", self.table)
            raise SourceError(f"Failed to fetch records from {self.table}") from e

        logger.debug("Fetched %d rows from %s", len(rows), self.table)
        return _parse_rows(rows)

    async def fetch_page(
        self, limit: int, offset: int = 0
    ) -> tuple[list[InteractionRecord], int]:
        """Fetch one newest-first page of full records plus the total row count."""
        sb = await get_supabase_client()

        try:
            result = await (
                sb.table(self.table)
                .select("*", count="exact")
                .order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as e:
            logger.exception("Failed to fetch record page from %s", self.table)
            raise SourceError(f"Failed to fetch records from {self.table}") from e

        records = _parse_rows(result.data or [])
        total = result.count if result.count is not None else len(records)
        return records, total


# Singleton
_record_source: RecordSource | None = None


def get_record_source() -> RecordSource:
    """Get or create the singleton record source."""
    global _record_source
    if _record_source is None:
        _record_source = RecordSource()
    return _record_source
