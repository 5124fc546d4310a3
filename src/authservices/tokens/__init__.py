"""Token management: storage, acquisition, and the single-flight cache.

- :class:`TokenAcquirer` -- performs the client-credentials grant.
- :class:`TokenCache` -- serves cached tokens and collapses concurrent
  acquisitions per client name.
- :class:`TokenStore` -- storage interface, with :class:`MemoryTokenStore`
  and the :mod:`diskcache`-backed :class:`DiskTokenStore`.
"""

from authservices.tokens.acquirer import TokenAcquirer, parse_token_response
from authservices.tokens.cache import TokenCache
from authservices.tokens.store import DiskTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    "DiskTokenStore",
    "MemoryTokenStore",
    "TokenAcquirer",
    "TokenCache",
    "TokenStore",
    "parse_token_response",
]
