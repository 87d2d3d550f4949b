"""Tests for the notify-service CLI commands.

Testing approach:
- Uses Click's CliRunner for command invocation
- Routing commands run against the real routing table
- Outbox and worker commands have their database/worker layer mocked
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import json
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner
import pytest

from notify_service.cli.main import cli
from notify_service.features.notifications.exceptions import DeliveryContractError
from notify_service.features.notifications.schemas import OutboxStats

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def mock_outbox_db():
    """Patch the outbox command's session and teardown helpers."""

    @asynccontextmanager
    async def fake_session():
        yield MagicMock()

    with (
        patch("notify_service.cli.commands.outbox.get_async_session", fake_session),
        patch("notify_service.cli.commands.outbox.close_database", AsyncMock()),
        patch("notify_service.cli.commands.outbox.get_outbox_repository") as get_repo,
    ):
        repository = MagicMock()
        get_repo.return_value = repository
        yield repository


# =============================================================================
# Routes
# =============================================================================


class TestRoutesCommands:
    """Tests for `routes list` and `routes show`."""

    def test_list(self, cli_runner):
        result = cli_runner.invoke(cli, ["routes", "list"])

        assert result.exit_code == 0
        assert "Routing Table (11 event types)" in result.output
        assert "ticket.created" in result.output
        assert "roles=[LANDLORD, OPS] channels=[in-app, email]" in result.output

    def test_show(self, cli_runner):
        result = cli_runner.invoke(cli, ["routes", "show", "quote.approved"])

        assert result.exit_code == 0
        assert "CONTRACTOR, TENANT" in result.output
        assert "in-app" in result.output

    def test_show_unknown(self, cli_runner):
        result = cli_runner.invoke(cli, ["routes", "show", "ticket.sneezed"])

        assert result.exit_code == 1
        assert "No routing rule" in result.output

    def test_invalid_routing_file(self, cli_runner, tmp_path, monkeypatch):
        path = tmp_path / "routing.yaml"
        path.write_text("ticket.sneezed:\n  roles: [OPS]\n  channels: [email]\n")
        monkeypatch.setenv("NOTIFY_ROUTING_FILE", str(path))

        result = cli_runner.invoke(cli, ["routes", "list"])

        assert result.exit_code == 1
        assert "Invalid routing configuration" in result.output


# =============================================================================
# Outbox
# =============================================================================


class TestOutboxCommands:
    """Tests for `outbox stats` and `outbox failed`."""

    def test_stats_table(self, cli_runner, mock_outbox_db):
        mock_outbox_db.stats = AsyncMock(
            return_value=OutboxStats(pending=3, delivered=10, failed=2, exhausted=1)
        )

        result = cli_runner.invoke(cli, ["outbox", "stats"])

        assert result.exit_code == 0
        assert "Outbox Statistics" in result.output
        assert "Exhausted" in result.output
        assert "15" in result.output

    def test_stats_json(self, cli_runner, mock_outbox_db):
        mock_outbox_db.stats = AsyncMock(return_value=OutboxStats(pending=3, delivered=10))

        result = cli_runner.invoke(cli, ["outbox", "stats", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["pending"] == 3
        assert data["total"] == 13

    def test_failed_empty(self, cli_runner, mock_outbox_db):
        mock_outbox_db.list_exhausted = AsyncMock(return_value=[])

        result = cli_runner.invoke(cli, ["outbox", "failed"])

        assert result.exit_code == 0
        assert "No exhausted entries" in result.output

    def test_failed_limit_passed(self, cli_runner, mock_outbox_db):
        mock_outbox_db.list_exhausted = AsyncMock(return_value=[])

        cli_runner.invoke(cli, ["outbox", "failed", "--limit", "5", "--format", "json"])

        assert mock_outbox_db.list_exhausted.await_args.kwargs == {"limit": 5}


# =============================================================================
# Worker
# =============================================================================


class TestWorkerDrain:
    """Tests for `worker drain`."""

    def test_drains_until_empty(self, cli_runner):
        worker = MagicMock()
        worker.process_batch = AsyncMock(side_effect=[5, 2, 0])

        with (
            patch(
                "notify_service.features.notifications.worker.DeliveryWorker",
                return_value=worker,
            ),
            patch("notify_service.infra.database.close_database", AsyncMock()),
        ):
            result = cli_runner.invoke(cli, ["worker", "drain"])

        assert result.exit_code == 0
        assert "Processed 7 outbox entries" in result.output

    def test_contract_error_exits_nonzero(self, cli_runner):
        worker = MagicMock()
        worker.process_batch = AsyncMock(side_effect=[DeliveryContractError("bad call"), 0])

        with (
            patch(
                "notify_service.features.notifications.worker.DeliveryWorker",
                return_value=worker,
            ),
            patch("notify_service.infra.database.close_database", AsyncMock()),
        ):
            result = cli_runner.invoke(cli, ["worker", "drain"])

        assert result.exit_code == 1
        assert "contract violated" in result.output

    def test_max_batches(self, cli_runner):
        worker = MagicMock()
        worker.process_batch = AsyncMock(return_value=1)

        with (
            patch(
                "notify_service.features.notifications.worker.DeliveryWorker",
                return_value=worker,
            ),
            patch("notify_service.infra.database.close_database", AsyncMock()),
        ):
            result = cli_runner.invoke(cli, ["worker", "drain", "--max-batches", "3"])

        assert result.exit_code == 0
        assert worker.process_batch.await_count == 3

    def test_disabled_delivery_processes_nothing(self, cli_runner, monkeypatch):
        monkeypatch.setenv("NOTIFY_ENABLED", "false")

        with patch("notify_service.features.notifications.worker.DeliveryWorker") as worker_cls:
            result = cli_runner.invoke(cli, ["worker", "drain"])

        assert result.exit_code == 0
        assert "disabled" in result.output
        worker_cls.assert_not_called()
