"""Tests for the ollama-models command."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ollama_lifecycle.cli.models import build_parser, main
from ollama_lifecycle.exceptions import ServiceUnavailableError, UserAbortedError
from ollama_lifecycle.models import InstallResult, InstallStatus, ServiceStatus

from tests.conftest import make_model


@pytest.fixture(autouse=True)
def env(temp_dir, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(temp_dir / "logs"))
    return temp_dir


@pytest.fixture
def manager():
    with patch("ollama_lifecycle.cli.models.ModelManager") as manager_class:
        manager = manager_class.return_value
        manager.status = AsyncMock(return_value=ServiceStatus(
            api_available=True, models=[make_model("phi3:3.8b")], storage_used=1024
        ))
        manager.install = AsyncMock(return_value=InstallResult(
            model="phi3:3.8b", status=InstallStatus.SUCCEEDED, attempts=1, elapsed=1.0
        ))
        manager.remove = AsyncMock(return_value=True)
        manager.update = AsyncMock(return_value=InstallResult(
            model="llama3", status=InstallStatus.FAILED, attempts=0, elapsed=0.0, error="model not installed"
        ))
        manager.optimize = AsyncMock(return_value=["broken:1"])
        manager.cleanup = AsyncMock(return_value={"tmp_entries": 0, "log_files": 1, "backups": 2})
        yield manager


def test_parser_aliases():
    parser = build_parser()
    assert parser.parse_args(["ls"]).command == "ls"
    args = parser.parse_args(["rm", "phi3:3.8b", "--force"])
    assert args.name == "phi3:3.8b"
    assert args.force is True
    assert parser.parse_args(["update", "llama3", "--install"]).install is True


def test_list_and_status(manager, capsys):
    assert main(["list"]) == 0
    assert "phi3:3.8b" in capsys.readouterr().out
    assert main(["stat"]) == 0
    assert "Total models: 1" in capsys.readouterr().out


def test_list_service_down(manager):
    manager.status = AsyncMock(return_value=ServiceStatus(api_available=False))
    assert main(["list"]) == 1


def test_install(manager):
    assert main(["install", "phi3:3.8b"]) == 0
    manager.install.assert_awaited_once_with("phi3:3.8b")


def test_install_service_down(manager):
    manager.install = AsyncMock(side_effect=ServiceUnavailableError())
    assert main(["add", "phi3:3.8b"]) == 1


def test_remove_forced(manager):
    assert main(["remove", "phi3:3.8b", "--force"]) == 0
    assert manager.remove.await_args.kwargs["force"] is True


def test_remove_cancelled(manager, capsys):
    manager.remove = AsyncMock(side_effect=UserAbortedError("not confirmed"))
    assert main(["remove", "phi3:3.8b"]) == 0
    assert "cancelled" in capsys.readouterr().out


def test_update_missing(manager, capsys):
    assert main(["update", "llama3"]) == 1
    assert "--install" in capsys.readouterr().out
    manager.update.assert_awaited_once_with("llama3", install_if_missing=False)


def test_optimize_and_cleanup(manager, capsys):
    assert main(["optimize"]) == 0
    assert "broken:1" in capsys.readouterr().out
    assert main(["cleanup"]) == 0
    assert "2 backups removed" in capsys.readouterr().out


def test_health(manager):
    report = MagicMock(healthy=False, status="unhealthy")
    with patch("ollama_lifecycle.cli.models.HealthChecker") as checker_class:
        checker_class.return_value.run = AsyncMock(return_value=report)
        assert main(["health"]) == 1
