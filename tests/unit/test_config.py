from pathlib import Path

import pytest

from filebridge.base.config import BridgeConfig, get_config, set_config
from filebridge.errors import BridgeError, ErrorCode

ENV_VARS = [
    "PORT",
    "STORAGE_DIR",
    "FILEBRIDGE_HOST",
    "FILEBRIDGE_ALLOWED_ORIGINS",
    "FILEBRIDGE_MAX_BODY_MB",
    "FILEBRIDGE_SERVER_COMMAND",
    "FILEBRIDGE_SERVER_PATH",
    "FILEBRIDGE_AUTO_CONNECT",
    "FILEBRIDGE_EVENT_QUEUE_SIZE",
    "FILEBRIDGE_WS_SEND_TIMEOUT",
    "FILEBRIDGE_LOG_LEVEL",
    "FILEBRIDGE_LOG_FILE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    set_config(None)


def test_defaults(clean_env, tmp_path):
    (tmp_path / "agent").mkdir()
    clean_env.chdir(tmp_path / "agent")

    config = BridgeConfig.from_env()

    assert config.server.port == 3000
    assert config.server.allowed_origins == ("*",)
    assert config.backend.command == "node"
    assert config.backend.auto_connect is True
    assert config.backend.server_path == (tmp_path / "dist" / "index.js").resolve()
    assert config.backend.storage_dir == (tmp_path / "BRANDYFICATION").resolve()
    assert config.events.send_timeout == 5.0
    assert config.log.file is None


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("STORAGE_DIR", str(tmp_path / "store"))
    clean_env.setenv("FILEBRIDGE_SERVER_PATH", str(tmp_path / "server.js"))
    clean_env.setenv("FILEBRIDGE_AUTO_CONNECT", "false")
    clean_env.setenv("FILEBRIDGE_ALLOWED_ORIGINS", "http://localhost:3000, http://127.0.0.1:3000")
    clean_env.setenv("FILEBRIDGE_LOG_FILE", str(tmp_path / "logs" / "bridge.log"))

    config = BridgeConfig.from_env()

    assert config.server.port == 8080
    assert config.backend.storage_dir == (tmp_path / "store").resolve()
    assert config.backend.server_path == (tmp_path / "server.js").resolve()
    assert config.backend.auto_connect is False
    assert config.server.allowed_origins == ("http://localhost:3000", "http://127.0.0.1:3000")
    assert config.log.file == Path(tmp_path / "logs" / "bridge.log")


def test_invalid_port_is_config_error(clean_env):
    clean_env.setenv("PORT", "three thousand")

    with pytest.raises(BridgeError) as exc_info:
        BridgeConfig.from_env()

    assert exc_info.value.code is ErrorCode.CONFIG_INVALID


def test_queue_size_must_be_positive(clean_env):
    clean_env.setenv("FILEBRIDGE_EVENT_QUEUE_SIZE", "0")

    with pytest.raises(BridgeError):
        BridgeConfig.from_env()


@pytest.mark.parametrize("raw", ["0", "-1", "soon"])
def test_send_timeout_must_be_a_positive_number(clean_env, raw):
    clean_env.setenv("FILEBRIDGE_WS_SEND_TIMEOUT", raw)

    with pytest.raises(BridgeError) as exc_info:
        BridgeConfig.from_env()

    assert exc_info.value.code is ErrorCode.CONFIG_INVALID


def test_get_config_is_cached_until_reset(clean_env):
    clean_env.setenv("PORT", "4000")
    set_config(None)

    first = get_config()
    clean_env.setenv("PORT", "5000")

    assert get_config() is first
    set_config(None)
    assert get_config().server.port == 5000
