"""Storage backends for cached tokens.

:class:`~authservices.tokens.cache.TokenCache` keeps at most one
:class:`~authservices.models.CachedToken` per client name in a
:class:`TokenStore`.  Two backends are provided:

* :class:`MemoryTokenStore` -- a plain dict, private to the process.  The
  default.
* :class:`DiskTokenStore` -- a :mod:`diskcache` directory that several
  processes on one host can share, so a token acquired by one worker is
  reused by the others.

Store operations are synchronous and never await, which keeps every
read-check-replace sequence in the cache free of suspension points.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import diskcache

from authservices.models import CachedToken

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Abstract per-name token storage."""

    @abstractmethod
    def get(self, name: str) -> Optional[CachedToken]:
        """Return the stored token for *name*, or ``None``."""

    @abstractmethod
    def set(self, name: str, token: CachedToken) -> None:
        """Store *token* under *name*, replacing any previous entry."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove the entry for *name* if present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    def close(self) -> None:
        """Release backend resources."""


class MemoryTokenStore(TokenStore):
    """In-process dict store."""

    def __init__(self) -> None:
        self._tokens: dict[str, CachedToken] = {}

    def get(self, name: str) -> Optional[CachedToken]:
        return self._tokens.get(name)

    def set(self, name: str, token: CachedToken) -> None:
        self._tokens[name] = token

    def delete(self, name: str) -> None:
        self._tokens.pop(name, None)

    def clear(self) -> None:
        self._tokens.clear()

    def __len__(self) -> int:
        return len(self._tokens)


class DiskTokenStore(TokenStore):
    """Token store backed by a :class:`diskcache.Cache` directory.

    Entries are serialised with :meth:`~pydantic.BaseModel.model_dump` and
    given a diskcache expiry equal to the token lifetime so stale entries
    are evicted by diskcache itself.  Freshness is still decided by the
    token cache, against its own clock.

    Args:
        directory: Root directory.  A ``tokens/`` subdirectory is created
            inside it.
    """

    _KEY_PREFIX = "token:"

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory) / "tokens"
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, name: str) -> Optional[CachedToken]:
        raw = self._cache.get(self._key(name))
        if raw is None:
            return None
        try:
            return CachedToken.model_validate(raw)
        except ValueError as exc:
            logger.warning("Discarding unreadable cached token for '%s': %s", name, exc)
            self._cache.delete(self._key(name))
            return None

    def set(self, name: str, token: CachedToken) -> None:
        if token.lifetime <= 0:
            # Nothing worth sharing; just make sure an older entry does not linger.
            self._cache.delete(self._key(name))
            return
        self._cache.set(self._key(name), token.model_dump(), expire=token.lifetime)

    def delete(self, name: str) -> None:
        self._cache.delete(self._key(name))

    def clear(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._cache.close()

    def _key(self, name: str) -> str:
        return f"{self._KEY_PREFIX}{name}"
