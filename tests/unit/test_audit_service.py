"""Unit tests for AuditService using a mock repository."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

from src.cm_audit.application.service import AuditService, should_record
from src.cm_audit.domain.models import AuditLogEntry
from src.cm_common.enums import AuditAction
from src.cm_config.application.store import parse_config
from src.cm_config.domain.models import AuditLogConfig, OrgConfig


def _make_entry(entry_id: int = 1, public: bool = True) -> AuditLogEntry:
    return AuditLogEntry(
        id=entry_id,
        action="CREATE_EXPENSE",
        actor_handle="@admin_abc123",
        target="7",
        details={"amount_cents": 6000},
        public=public,
        timestamp=datetime.now(UTC),
    )


class TestShouldRecord:
    def test_enabled_without_allow_list(self) -> None:
        assert should_record(AuditLogConfig(), "CAST_VOTE")

    def test_disabled(self) -> None:
        assert not should_record(AuditLogConfig(enabled=False), "CAST_VOTE")

    def test_allow_list_excludes(self) -> None:
        settings = AuditLogConfig(actions_to_log=("CREATE_EXPENSE",))
        assert should_record(settings, "CREATE_EXPENSE")
        assert not should_record(settings, "CAST_VOTE")


class TestRecord:
    async def test_inserts_with_configured_visibility(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.insert.return_value = _make_entry(public=False)
        svc = AuditService(repo=mock_repo)
        config = parse_config({"audit_log": {"public": False}})

        entry = await svc.record(
            AsyncMock(), config, AuditAction.CREATE_EXPENSE, "@admin_abc123", target="7"
        )

        assert entry is not None
        kwargs = mock_repo.insert.await_args.kwargs
        assert kwargs["action"] == "CREATE_EXPENSE"
        assert kwargs["public"] is False
        assert kwargs["target"] == "7"

    async def test_noop_when_disabled(self) -> None:
        mock_repo = AsyncMock()
        svc = AuditService(repo=mock_repo)
        config = parse_config({"audit_log": {"enabled": False}})

        entry = await svc.record(AsyncMock(), config, AuditAction.CAST_VOTE, "@bob_000001")

        assert entry is None
        mock_repo.insert.assert_not_awaited()

    async def test_noop_when_not_in_allow_list(self) -> None:
        mock_repo = AsyncMock()
        svc = AuditService(repo=mock_repo)
        config = parse_config({"audit_log": {"actions_to_log": ["CLOSE_PROPOSAL"]}})

        assert await svc.record(AsyncMock(), config, AuditAction.CAST_VOTE, "@bob") is None
        mock_repo.insert.assert_not_awaited()

    async def test_never_commits(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.insert.return_value = _make_entry()
        db = AsyncMock()

        await AuditService(repo=mock_repo).record(
            db, OrgConfig(), AuditAction.ADD_COMMENT, "@bob"
        )

        db.commit.assert_not_awaited()


class TestListing:
    async def test_list_public_pages_public_entries(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.list_entries.return_value = [_make_entry(3), _make_entry(2)]
        mock_repo.count_entries.return_value = 12
        svc = AuditService(repo=mock_repo)

        page = await svc.list_public(AsyncMock(), OrgConfig(), page=2, limit=10)

        db_arg, public_only, offset, limit = mock_repo.list_entries.await_args.args
        assert public_only is True
        assert offset == 10
        assert limit == 10
        assert page.total == 12
        assert [i.id for i in page.items] == [3, 2]

    async def test_list_public_empty_when_disabled(self) -> None:
        mock_repo = AsyncMock()
        svc = AuditService(repo=mock_repo)
        config = parse_config({"audit_log": {"enabled": False}})

        page = await svc.list_public(AsyncMock(), config, page=1, limit=20)

        assert page.items == []
        assert page.total == 0
        mock_repo.list_entries.assert_not_awaited()

    async def test_list_all_includes_private(self) -> None:
        mock_repo = AsyncMock()
        mock_repo.list_entries.return_value = [_make_entry(1, public=False)]
        mock_repo.count_entries.return_value = 1
        svc = AuditService(repo=mock_repo)

        page = await svc.list_all(AsyncMock(), page=1, limit=50)

        assert mock_repo.list_entries.await_args.args[1] is False
        assert page.items[0].public is False
