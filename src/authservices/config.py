"""Configuration loading with XDG paths, precedence resolution, and factories.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.authservices/`` on macOS and Windows.  See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Settings** -- one JSON file deserialised into
  :class:`~authservices.models.Settings`, located by :func:`load_settings`.
* **Credential resolution** -- secrets in the file may be written as
  ``env:VAR`` or ``file:/path`` and are resolved by
  :func:`resolve_credential` when the settings are loaded.
* **Factories** -- :func:`build_registry` and :func:`create_token_cache`
  construct the runtime components from resolved settings.  Nothing here
  keeps global state; callers pass the returned objects around.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from authservices.exceptions import ConfigError
from authservices.models import Settings
from authservices.registry import ClientRegistry
from authservices.tokens.acquirer import Clock, TokenAcquirer
from authservices.tokens.cache import TokenCache
from authservices.tokens.store import DiskTokenStore, MemoryTokenStore, TokenStore

_APP_NAME = "authservices"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "authservices.json"
CONFIG_ENV_VAR = "AUTHSERVICES_CONFIG"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/authservices/``
    (default ``~/.config/authservices/``).  Elsewhere: ``~/.authservices/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory (disk token store), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Settings ---


def find_settings_file(path: Optional[str | Path] = None) -> Optional[Path]:
    """Locate the settings file.

    Precedence (high to low):
        1. *path* argument (``--config``)
        2. ``AUTHSERVICES_CONFIG`` environment variable
        3. ``./authservices.json``
        4. ``<config_dir>/config.json``

    Returns:
        The file to load, or ``None`` when no candidate exists.

    Raises:
        ConfigError: If an explicitly requested file (1 or 2) is missing.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        explicit_path = Path(explicit).expanduser()
        if not explicit_path.is_file():
            raise ConfigError(f"Config file not found: {explicit_path}")
        return explicit_path

    project = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if project.is_file():
        return project

    user = get_config_dir() / _CONFIG_FILENAME
    if user.is_file():
        return user
    return None


def load_settings(path: Optional[str | Path] = None) -> Settings:
    """Load, resolve, and validate settings.

    Secret fields written as ``env:VAR`` or ``file:/path`` are resolved
    before validation.  With no settings file, defaults are returned.

    Raises:
        ConfigError: If the file cannot be read, contains invalid JSON, fails
            validation, or references a credential source that cannot be
            resolved.
    """
    settings_path = find_settings_file(path)
    if settings_path is None:
        return Settings()
    try:
        text = settings_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config at {settings_path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid config at {settings_path}: {exc}") from exc

    if isinstance(data, dict):
        _resolve_secrets(data)
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {settings_path}: {exc}") from exc


def _resolve_secrets(data: dict[str, Any]) -> None:
    """Resolve credential sources in place for every secret-bearing field."""
    for entry in data.get("clients") or []:
        if isinstance(entry, dict) and isinstance(entry.get("client_secret"), str):
            entry["client_secret"] = resolve_credential(entry["client_secret"])

    for section in (data.get("keycloak") or {}).values():
        credentials = section.get("credentials") if isinstance(section, dict) else None
        if isinstance(credentials, dict) and isinstance(credentials.get("secret"), str):
            credentials["secret"] = resolve_credential(credentials["secret"])

    bootstrap = data.get("bootstrap")
    if isinstance(bootstrap, dict):
        for key in ("admin_password", "client_secret"):
            if isinstance(bootstrap.get(key), str):
                bootstrap[key] = resolve_credential(bootstrap[key])


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used literally

    Raises:
        ConfigError: If the variable is unset or the file is unreadable.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return source


# --- Factories ---


def build_registry(settings: Settings) -> ClientRegistry:
    """Build the :class:`~authservices.registry.ClientRegistry` from both client sections.

    Raises:
        ConfigError: If a name appears more than once across ``clients`` and
            ``keycloak``.
    """
    configs = list(settings.clients)
    configs.extend(options.to_client_config(name) for name, options in settings.keycloak.items())
    return ClientRegistry(configs)


def create_token_store(settings: Settings) -> TokenStore:
    if settings.cache.backend == "disk":
        directory = settings.cache.directory or get_cache_dir()
        return DiskTokenStore(directory)
    return MemoryTokenStore()


def create_token_cache(
    settings: Settings,
    registry: ClientRegistry,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Optional[Clock] = None,
) -> TokenCache:
    """Wire acquirer, store, and cache together from *settings*.

    Args:
        settings: Resolved settings (request, cache sections).
        registry: Clients the cache may acquire tokens for.
        http_client: Optional client for token requests (tests pass one
            backed by :class:`httpx.MockTransport`).
        clock: Optional time source shared by acquirer and cache.
    """
    acquirer_kwargs: dict[str, Any] = {"http_client": http_client}
    if clock is not None:
        acquirer_kwargs["clock"] = clock
    acquirer = TokenAcquirer(registry, settings.request, **acquirer_kwargs)
    return TokenCache(
        acquirer,
        create_token_store(settings),
        skew_seconds=settings.cache.skew_seconds,
    )
