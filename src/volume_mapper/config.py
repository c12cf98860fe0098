"""Configuration management - loads settings from .env and environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _load_dotenv(path: Path | None = None) -> None:
    """Minimal .env loader (avoids external dependency)."""
    candidates = [
        path,
        Path.cwd() / ".env",
        Path(__file__).resolve().parents[2] / ".env",
    ]
    env_path = None
    for candidate in candidates:
        if candidate and candidate.exists():
            env_path = candidate
            break
    if env_path is None:
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if key and key not in os.environ:
            os.environ[key] = value


DEFAULT_STAGING_DIR = "C:\\Windows\\Temp"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class VCenterConfig:
    host: str = ""
    port: int = 443
    username: str = ""
    password: str = ""
    disable_ssl: bool = True

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.username)


@dataclass
class GuestConfig:
    username: str = ""
    password: str = ""
    port: int = 5985
    transport: str = "ntlm"
    scheme: str = "http"


@dataclass
class MapperConfig:
    max_workers: int = 5
    staging_dir: str = DEFAULT_STAGING_DIR


@dataclass
class AppConfig:
    vcenter: VCenterConfig = field(default_factory=VCenterConfig)
    guest: GuestConfig = field(default_factory=GuestConfig)
    mapper: MapperConfig = field(default_factory=MapperConfig)


def load_config(dotenv: Path | None = None) -> AppConfig:
    """Load configuration from environment / .env file."""
    _load_dotenv(dotenv)

    vcenter = VCenterConfig(
        host=os.getenv("VCENTER_HOST", ""),
        port=int(os.getenv("VCENTER_PORT", "443")),
        username=os.getenv("VCENTER_USER", ""),
        password=os.getenv("VCENTER_PASSWORD", ""),
        disable_ssl=_env_bool("VCENTER_DISABLE_SSL", "true"),
    )

    guest = GuestConfig(
        username=os.getenv("GUEST_USER", ""),
        password=os.getenv("GUEST_PASSWORD", ""),
        port=int(os.getenv("GUEST_WINRM_PORT", "5985")),
        transport=os.getenv("GUEST_WINRM_TRANSPORT", "ntlm"),
        scheme=os.getenv("GUEST_WINRM_SCHEME", "http"),
    )

    mapper = MapperConfig(
        max_workers=int(os.getenv("MAPPER_MAX_WORKERS", "5")),
        staging_dir=os.getenv("MAPPER_STAGING_DIR", DEFAULT_STAGING_DIR),
    )

    return AppConfig(vcenter=vcenter, guest=guest, mapper=mapper)
