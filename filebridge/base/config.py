# ============================================================================
# filebridge/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every setting of the bridge: where the web server listens, how the
# MCP backend process is launched, how change events are buffered, and how
# logging behaves.
#
# KEY CONCEPTS:
# 1. Dataclasses: frozen sections grouped under one BridgeConfig
# 2. Environment Variables: PORT and STORAGE_DIR keep their historical names,
#    everything else lives under the FILEBRIDGE_ prefix
# 3. Singleton Pattern: get_config() loads once, set_config() swaps it in tests
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from filebridge.errors import BridgeError, ErrorCode

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise BridgeError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name},
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise BridgeError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be a number, got {raw!r}",
            details={"variable": name},
        )


# ============================================================================
# Web Server Configuration
# ============================================================================

@dataclass(frozen=True)
class ServerConfig:
    # 0.0.0.0 so the UI is reachable from other machines on the LAN
    host: str = "0.0.0.0"

    port: int = 3000

    # Origins allowed by the CORS middleware ("*" = any)
    allowed_origins: tuple = ("*",)

    # Upload bodies carry base64 file content, so they get a generous limit
    max_body_mb: int = 100

    @property
    def max_body_bytes(self) -> int:
        return self.max_body_mb * 1024 * 1024


# ============================================================================
# MCP Backend Configuration
# ============================================================================
# The backend is a separate tool server launched as a child process and driven
# over its stdin/stdout.

@dataclass(frozen=True)
class BackendConfig:
    # Interpreter used to launch the backend script
    command: str = "node"

    # Entry point of the backend server (sibling checkout by default)
    server_path: Path = field(default_factory=lambda: (Path.cwd() / ".." / "dist" / "index.js").resolve())

    # Storage root handed to the backend through STORAGE_DIR
    storage_dir: Path = field(default_factory=lambda: (Path.cwd() / ".." / "BRANDYFICATION").resolve())

    # Connect to the backend when the web server starts
    auto_connect: bool = True

    # Identity announced during the MCP handshake
    client_name: str = "brandyfication-agent"
    client_version: str = "1.0.0"


# ============================================================================
# Change Event Configuration
# ============================================================================

@dataclass(frozen=True)
class EventsConfig:
    # Per-subscriber buffer for the SSE stream; oldest events are dropped when full
    subscriber_queue_size: int = 100

    # Seconds a WebSocket send may take before that viewer is dropped
    send_timeout: float = 5.0


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Optional log file; console-only when unset
    file: Optional[Path] = None

    # Rotation settings for the log file
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class BridgeConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        origins_str = os.getenv("FILEBRIDGE_ALLOWED_ORIGINS", "")
        origins = tuple(o.strip() for o in origins_str.split(",") if o.strip()) or ("*",)

        server = ServerConfig(
            host=os.getenv("FILEBRIDGE_HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            allowed_origins=origins,
            max_body_mb=_env_int("FILEBRIDGE_MAX_BODY_MB", 100),
        )

        backend_defaults = BackendConfig()
        server_path = os.getenv("FILEBRIDGE_SERVER_PATH")
        storage_dir = os.getenv("STORAGE_DIR")
        backend = BackendConfig(
            command=os.getenv("FILEBRIDGE_SERVER_COMMAND", "node"),
            server_path=Path(server_path).resolve() if server_path else backend_defaults.server_path,
            storage_dir=Path(storage_dir).resolve() if storage_dir else backend_defaults.storage_dir,
            auto_connect=_env_bool("FILEBRIDGE_AUTO_CONNECT", True),
        )

        events = EventsConfig(
            subscriber_queue_size=_env_int("FILEBRIDGE_EVENT_QUEUE_SIZE", 100),
            send_timeout=_env_float("FILEBRIDGE_WS_SEND_TIMEOUT", 5.0),
        )

        log_file = os.getenv("FILEBRIDGE_LOG_FILE")
        log = LogConfig(
            level=os.getenv("FILEBRIDGE_LOG_LEVEL", "INFO"),
            file=Path(log_file) if log_file else None,
        )

        if events.subscriber_queue_size < 1:
            raise BridgeError(
                ErrorCode.CONFIG_INVALID,
                "FILEBRIDGE_EVENT_QUEUE_SIZE must be at least 1",
            )
        if events.send_timeout <= 0:
            raise BridgeError(
                ErrorCode.CONFIG_INVALID,
                "FILEBRIDGE_WS_SEND_TIMEOUT must be positive",
            )

        return cls(server=server, backend=backend, events=events, log=log)


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[BridgeConfig] = None


def get_config() -> BridgeConfig:
    """
    Get the global configuration instance.

    Loaded from the environment on first use, then reused.
    """
    global _config
    if _config is None:
        _config = BridgeConfig.from_env()
    return _config


def set_config(config: Optional[BridgeConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None makes the next get_config() call re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[BridgeConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Console output always; a rotating file as well when LogConfig.file is set.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, cfg.log.level.upper(), logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
