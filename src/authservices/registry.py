"""Immutable registry of named client-credentials configurations.

The registry is populated once at startup (see
:func:`authservices.config.build_registry`) and is read-only thereafter, so
it can be shared across tasks without synchronisation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from authservices.exceptions import ConfigError
from authservices.models import ClientCredentialsConfig


class ClientRegistry(Mapping[str, ClientCredentialsConfig]):
    """Read-only mapping from client name to :class:`ClientCredentialsConfig`.

    Args:
        configs: The client configurations to register.  Names must be
            unique.

    Raises:
        ConfigError: If two configurations share a name.

    Example::

        registry = ClientRegistry([admin_config, protection_config])
        registry.resolve("admin").token_endpoint
    """

    def __init__(self, configs: Iterable[ClientCredentialsConfig] = ()) -> None:
        entries: dict[str, ClientCredentialsConfig] = {}
        for config in configs:
            if config.name in entries:
                raise ConfigError(f"Client '{config.name}' is registered more than once")
            entries[config.name] = config
        self._entries = MappingProxyType(entries)

    def __getitem__(self, name: str) -> ClientCredentialsConfig:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ClientRegistry({sorted(self._entries)!r})"

    def resolve(self, name: str) -> ClientCredentialsConfig:
        """Return the configuration for *name*.

        Raises:
            ConfigError: If no client is registered under *name*.
        """
        config = self._entries.get(name)
        if config is None:
            available = ", ".join(sorted(self._entries)) or "(none)"
            raise ConfigError(
                f"No client registered under '{name}'. Available clients: {available}"
            )
        return config
