import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from filebridge import cli
from filebridge.base.config import BackendConfig, BridgeConfig, set_config
from filebridge.errors import TransportError


@pytest.fixture(autouse=True)
def base_config(tmp_path):
    set_config(BridgeConfig(backend=BackendConfig(server_path=tmp_path / "index.js")))
    yield
    set_config(None)


def test_serve_applies_overrides(monkeypatch, tmp_path):
    serve = MagicMock()
    monkeypatch.setattr("filebridge.server.api.serve", serve)

    code = cli.main(["serve", "--port", "4000", "--no-auto-connect", "--storage-dir", str(tmp_path / "store")])

    assert code == 0
    config = serve.call_args.kwargs["config"]
    assert config.server.port == 4000
    assert config.backend.auto_connect is False
    assert config.backend.storage_dir == (tmp_path / "store").resolve()
    assert config.backend.server_path == Path(tmp_path / "index.js")


def test_tools_prints_json(monkeypatch, capsys):
    monkeypatch.setattr(cli, "setup_logging", MagicMock())
    monkeypatch.setattr(cli, "_list_tools", AsyncMock(return_value=[{"name": "list_files"}]))

    code = cli.main(["tools"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == [{"name": "list_files"}]


def test_tools_reports_backend_failure(monkeypatch, capsys):
    monkeypatch.setattr(cli, "setup_logging", MagicMock())
    monkeypatch.setattr(cli, "_list_tools", AsyncMock(side_effect=TransportError("spawn node ENOENT")))

    assert cli.main(["tools"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    error = json.loads(captured.err)
    assert error["code"] == "BACKEND_001"
    assert error["message"] == "spawn node ENOENT"
    assert error["http_status"] == 500
