"""Per-endpoint cache of DPoP nonces."""

from __future__ import annotations

import logging
from collections import OrderedDict

import httpx

from .security import is_valid_nonce

logger = logging.getLogger(__name__)

DEFAULT_MAXSIZE = 100


def endpoint_key(url: httpx.URL) -> str:
    """Return ``origin + path`` for *url*, without query or fragment.

    httpx already drops default ports, so ``https://op.example:443/token`` and
    ``https://op.example/token`` map to the same key.
    """
    path = url.raw_path.split(b"?", 1)[0].decode("ascii")
    return f"{url.scheme}://{url.netloc.decode('ascii')}{path}"


class NonceCache:
    """Bounded LRU mapping of endpoint key to the last valid nonce seen there."""

    def __init__(self, maxsize: int = DEFAULT_MAXSIZE) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._entries: OrderedDict[str, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> str | None:
        try:
            value = self._entries[key]
        except KeyError:
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("evicted DPoP nonce for %s", evicted)

    def remember(self, key: str, nonce: str | None) -> bool:
        """Store *nonce* for *key* if it is a well-formed token.

        Returns whether the cache was updated.
        """
        if not nonce:
            return False
        if not is_valid_nonce(nonce):
            logger.debug("ignoring malformed DPoP nonce from %s", key)
            return False
        self.set(key, nonce)
        logger.debug("cached DPoP nonce for %s", key)
        return True

    def clear(self) -> None:
        self._entries.clear()


NONCE_CACHE = NonceCache()
