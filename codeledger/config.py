"""Configuration utilities for the code ledger service.

This module loads application configuration with the following rules:
- Primary source: `codeledger_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("codeledger_config.json")
logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "sql", "github")


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: an unreadable override falls back to lower layers
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(key, default)
    if value is not None and not str(value).strip():
        return default
    return value


class AllocatorConfig(BaseModel):
    prefix: str
    start: int = Field(ge=0)
    max_attempts: int = Field(default=5, ge=1)
    init_on_startup: bool = Field(default=True)


class GitHubStoreConfig(BaseModel):
    token: Optional[str] = None
    owner: Optional[str] = None
    repo: Optional[str] = None
    branch: str = "main"
    path: str = "mil_codes.json"
    api_url: str = "https://api.github.com"
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("path")
    @classmethod
    def path_must_be_relative(cls, v: str) -> str:
        v = v.strip().lstrip("/")
        if not v:
            raise ValueError("github.path must be a non-empty repository path")
        return v


class StoreConfig(BaseModel):
    backend: str = "memory"
    ledger_key: str = "default"
    database_url: Optional[str] = None
    github: GitHubStoreConfig = Field(default_factory=GitHubStoreConfig)

    @field_validator("backend")
    @classmethod
    def backend_must_be_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"store.backend must be one of {list(STORE_BACKENDS)}")
        return v

    @model_validator(mode="after")
    def github_requires_credentials(self) -> "StoreConfig":
        if self.backend == "github":
            missing = [name for name in ("token", "owner", "repo") if not getattr(self.github, name)]
            if missing:
                raise ValueError(f"github backend requires {', '.join(missing)}")
        return self


class AppConfig(BaseModel):
    allocator: AllocatorConfig
    store: StoreConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _as_bool(value: Optional[str], name: str) -> bool:
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false, yes/no, on/off, 1/0), got {value!r}")


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) codeledger_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Allocator
    prefix = _env("CODES_PREFIX") or _read_config_file("codes.prefix") or _base("allocator.prefix", "C-")
    start_text = _env("CODES_START") or _read_config_file("codes.start") or _base("allocator.start", "1")
    attempts_text = _env("CODES_MAX_ATTEMPTS") or _read_config_file("codes.max_attempts") or _base("allocator.max_attempts", "5")
    init_text = _env("CODES_INIT_ON_STARTUP") or _read_config_file("codes.init_on_startup") or _base("allocator.init_on_startup", "true")

    # Store
    backend = _env("CODES_STORE_BACKEND") or _read_config_file("store.backend") or _base("store.backend", "memory")
    ledger_key = _env("CODES_LEDGER_KEY") or _read_config_file("store.ledger_key") or _base("store.ledger_key", "default")
    database_url = _env("TEST_DATABASE_URL") or _env("DATABASE_URL") or _read_config_file("database.url") or _base("store.database_url")

    # GitHub contents API
    gh_token = _env("GITHUB_TOKEN") or _read_config_file("github.token") or _base("store.github.token")
    gh_owner = _env("GITHUB_OWNER") or _read_config_file("github.owner") or _base("store.github.owner")
    gh_repo = _env("GITHUB_REPO") or _read_config_file("github.repo") or _base("store.github.repo")
    gh_branch = _env("GITHUB_BRANCH") or _read_config_file("github.branch") or _base("store.github.branch", "main")
    gh_path = _env("CODES_PATH") or _read_config_file("github.path") or _base("store.github.path", "mil_codes.json")
    gh_api = _env("GITHUB_API_URL") or _base("store.github.api_url", "https://api.github.com")
    gh_timeout = _env("GITHUB_TIMEOUT_SECONDS") or _base("store.github.timeout_seconds", "10")

    try:
        allocator_cfg = AllocatorConfig(
            prefix=str(prefix),
            start=int(str(start_text).strip()),
            max_attempts=int(str(attempts_text).strip()),
            init_on_startup=_as_bool(init_text, "init_on_startup"),
        )
        store_cfg = StoreConfig(
            backend=str(backend),
            ledger_key=str(ledger_key).strip(),
            database_url=database_url,
            github=GitHubStoreConfig(
                token=gh_token,
                owner=gh_owner,
                repo=gh_repo,
                branch=str(gh_branch).strip(),
                path=str(gh_path),
                api_url=str(gh_api).rstrip("/"),
                timeout_seconds=float(str(gh_timeout).strip()),
            ),
        )
        return AppConfig(allocator=allocator_cfg, store=store_cfg)
    except (PydanticValidationError, ValueError) as e:
        # Surface an actionable message; int()/float() parse failures land here too
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "AllocatorConfig",
    "StoreConfig",
    "GitHubStoreConfig",
    "STORE_BACKENDS",
    "load_config",
]
