"""Tests for the Supabase-backed record source."""

from __future__ import annotations

from datetime import timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from horse_dashboard.config import settings
from horse_dashboard.services import records as records_module
from horse_dashboard.services.records import RecordSource, SourceError

# =============================================================================
# HELPERS
# =============================================================================


class _FakeResult:
    """Minimal mock for supabase execute() result."""

    def __init__(self, data: list[dict[str, Any]], count: int | None = None) -> None:
        self.data = data
        self.count = count


def _row(**overrides: Any) -> dict[str, Any]:
    """A full table row using backend column names."""
    row: dict[str, Any] = {
        "id": 1,
        "name": "Maria",
        "whatsapp": "+5511999990000",
        "messages": "Quero saber o preço",
        "message_id": 4,
        "created_at": "2024-01-01T10:00:00+00:00",
        "talking": True,
        "stage": "pitch_direto",
        "prev_msg": "Oi",
        "finish": None,
    }
    row.update(overrides)
    return row


def _patch_client(sb: MagicMock):  # type: ignore[no-untyped-def]
    return patch(
        "horse_dashboard.services.records.get_supabase_client",
        new_callable=AsyncMock,
        return_value=sb,
    )


def _mock_table(execute: AsyncMock) -> tuple[MagicMock, MagicMock]:
    """Supabase mock whose select().order(...)[.order(...)].range().execute()
    resolves through ``execute``. Returns (client, select builder)."""
    sb = MagicMock()
    selected = sb.table.return_value.select.return_value
    ordered = selected.order.return_value
    # A second order() (the id tiebreak) lands on the same builder
    ordered.order.return_value = ordered
    ordered.range.return_value.execute = execute
    return sb, selected


# =============================================================================
# FETCH ALL
# =============================================================================


class TestFetchAll:
    """RecordSource.fetch_all projection, ordering, paging and errors."""

    @pytest.mark.asyncio
    async def test_maps_backend_columns(self) -> None:
        sb, selected = _mock_table(AsyncMock(return_value=_FakeResult([_row()])))

        with _patch_client(sb):
            result = await RecordSource("HORSE").fetch_all()

        sb.table.assert_called_once_with("HORSE")
        sb.table.return_value.select.assert_called_once_with("*")
        selected.order.assert_called_once_with("id")
        record = result[0]
        assert record.contact == "+5511999990000"
        assert record.message_text == "Quero saber o preço"
        assert record.message_count == 4
        assert record.is_talking is True
        assert record.previous_message == "Oi"
        assert record.is_finished is None

    @pytest.mark.asyncio
    async def test_projection_always_includes_identity(self) -> None:
        sb, _ = _mock_table(
            AsyncMock(
                return_value=_FakeResult(
                    [{"id": 1, "created_at": "2024-01-01T10:00:00+00:00", "stage": None}]
                )
            )
        )

        with _patch_client(sb):
            result = await RecordSource("HORSE").fetch_all(columns=["stage"])

        sb.table.return_value.select.assert_called_once_with("id, created_at, stage")
        assert result[0].stage is None
        assert result[0].is_finished is None

    @pytest.mark.asyncio
    async def test_projection_does_not_duplicate_columns(self) -> None:
        sb, _ = _mock_table(AsyncMock(return_value=_FakeResult([])))

        with _patch_client(sb):
            await RecordSource("HORSE").fetch_all(
                columns=["created_at", "finish"], order="asc"
            )

        sb.table.return_value.select.assert_called_once_with("id, created_at, finish")

    @pytest.mark.asyncio
    async def test_ascending_order(self) -> None:
        sb, selected = _mock_table(AsyncMock(return_value=_FakeResult([])))

        with _patch_client(sb):
            result = await RecordSource("HORSE").fetch_all(order="asc")

        selected.order.assert_called_once_with("created_at", desc=False)
        selected.order.return_value.order.assert_called_once_with("id")
        assert result == []

    @pytest.mark.asyncio
    async def test_descending_order(self) -> None:
        sb, selected = _mock_table(AsyncMock(return_value=_FakeResult([])))

        with _patch_client(sb):
            await RecordSource("HORSE").fetch_all(order="desc")

        selected.order.assert_called_once_with("created_at", desc=True)

    @pytest.mark.asyncio
    async def test_reads_every_page(self) -> None:
        first = [_row(id=1), _row(id=2)]
        second = [_row(id=3)]
        execute = AsyncMock(side_effect=[_FakeResult(first), _FakeResult(second)])
        sb, selected = _mock_table(execute)

        with _patch_client(sb), patch.object(settings, "records_page_size", 2):
            result = await RecordSource("HORSE").fetch_all()

        assert [r.id for r in result] == [1, 2, 3]
        assert execute.await_count == 2
        assert selected.order.return_value.range.call_args_list == [
            call(0, 1),
            call(2, 3),
        ]

    @pytest.mark.asyncio
    async def test_full_last_page_reads_one_more(self) -> None:
        execute = AsyncMock(
            side_effect=[
                _FakeResult([_row(id=1), _row(id=2)]),
                _FakeResult([]),
            ]
        )
        sb, _ = _mock_table(execute)

        with _patch_client(sb), patch.object(settings, "records_page_size", 2):
            result = await RecordSource("HORSE").fetch_all()

        assert len(result) == 2
        assert execute.await_count == 2

    @pytest.mark.asyncio
    async def test_none_data_is_empty(self) -> None:
        sb, _ = _mock_table(
            AsyncMock(return_value=_FakeResult(None))  # type: ignore[arg-type]
        )

        with _patch_client(sb):
            assert await RecordSource("HORSE").fetch_all() == []

    @pytest.mark.asyncio
    async def test_naive_timestamp_is_utc(self) -> None:
        sb, _ = _mock_table(
            AsyncMock(return_value=_FakeResult([_row(created_at="2024-01-01T10:00:00")]))
        )

        with _patch_client(sb):
            result = await RecordSource("HORSE").fetch_all()

        assert result[0].created_at.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_query_failure_raises_source_error(self) -> None:
        boom = RuntimeError("connection reset")
        sb, _ = _mock_table(AsyncMock(side_effect=boom))

        with _patch_client(sb):
            with pytest.raises(SourceError) as exc_info:
                await RecordSource("HORSE").fetch_all()

        assert exc_info.value.__cause__ is boom

    @pytest.mark.asyncio
    async def test_failure_on_later_page_raises_source_error(self) -> None:
        execute = AsyncMock(
            side_effect=[_FakeResult([_row(id=1)]), RuntimeError("timeout")]
        )
        sb, _ = _mock_table(execute)

        with _patch_client(sb), patch.object(settings, "records_page_size", 1):
            with pytest.raises(SourceError):
                await RecordSource("HORSE").fetch_all()

    @pytest.mark.asyncio
    async def test_malformed_row_raises_source_error(self) -> None:
        bad = _row()
        del bad["created_at"]
        sb, _ = _mock_table(AsyncMock(return_value=_FakeResult([bad])))

        with _patch_client(sb):
            with pytest.raises(SourceError):
                await RecordSource("HORSE").fetch_all()


# =============================================================================
# FETCH PAGE
# =============================================================================


class TestFetchPage:
    """Newest-first listing with exact count."""

    @pytest.mark.asyncio
    async def test_page_range_and_total(self) -> None:
        sb = MagicMock()
        chain = sb.table.return_value.select.return_value.order.return_value
        chain.range.return_value.execute = AsyncMock(
            return_value=_FakeResult([_row(id=11), _row(id=12)], count=42)
        )

        with _patch_client(sb):
            items, total = await RecordSource("HORSE").fetch_page(limit=10, offset=10)

        sb.table.return_value.select.assert_called_once_with("*", count="exact")
        sb.table.return_value.select.return_value.order.assert_called_once_with(
            "created_at", desc=True
        )
        chain.range.assert_called_once_with(10, 19)
        assert [r.id for r in items] == [11, 12]
        assert total == 42

    @pytest.mark.asyncio
    async def test_missing_count_falls_back_to_page_length(self) -> None:
        sb = MagicMock()
        chain = sb.table.return_value.select.return_value.order.return_value
        chain.range.return_value.execute = AsyncMock(
            return_value=_FakeResult([_row()], count=None)
        )

        with _patch_client(sb):
            _, total = await RecordSource("HORSE").fetch_page(limit=50)

        assert total == 1

    @pytest.mark.asyncio
    async def test_failure_raises_source_error(self) -> None:
        sb = MagicMock()
        chain = sb.table.return_value.select.return_value.order.return_value
        chain.range.return_value.execute = AsyncMock(side_effect=RuntimeError("401"))

        with _patch_client(sb):
            with pytest.raises(SourceError):
                await RecordSource("HORSE").fetch_page(limit=50)


# =============================================================================
# CLIENT
# =============================================================================


class TestSupabaseClient:
    """Lazy client creation."""

    @pytest.mark.asyncio
    async def test_creation_failure_raises_source_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(records_module, "_client", None)

        with patch(
            "horse_dashboard.services.records.acreate_client",
            new_callable=AsyncMock,
            side_effect=ValueError("invalid key"),
        ):
            with pytest.raises(SourceError):
                await records_module.get_supabase_client()

    @pytest.mark.asyncio
    async def test_client_is_reused(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(records_module, "_client", None)
        fake = MagicMock()

        with patch(
            "horse_dashboard.services.records.acreate_client",
            new_callable=AsyncMock,
            return_value=fake,
        ) as create:
            first = await records_module.get_supabase_client()
            second = await records_module.get_supabase_client()

        assert first is second is fake
        create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_drops_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(records_module, "_client", MagicMock())
        await records_module.close_supabase()
        assert records_module._client is None

    def test_default_table_from_settings(self) -> None:
        from horse_dashboard.config import settings

        assert RecordSource().table == settings.records_table
