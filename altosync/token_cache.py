# altosync/token_cache.py
"""File-backed cache for the feed access token.

The token lives in memory for the run and in a small JSON file between
runs (``{"token": ..., "expiry": <unix seconds>}``). A token is only handed
out while ``expiry`` is further away than the safety buffer; a stale or
unreadable file is removed so the next call re-authenticates.
"""
import json
import os
import time
from enum import Enum
from typing import Optional

from .utils import logger, mask


class TokenState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRING = "expiring"
    INVALID = "invalid"


class TokenCache:
    def __init__(self, path: str, buffer: int = 60, clock=time.time):
        self.path = path
        self.buffer = buffer
        self.clock = clock
        self.token: Optional[str] = None
        self.expiry: float = 0
        self._invalidated = False

    @property
    def state(self) -> TokenState:
        """Report on the token without loading or removing anything."""
        if self._invalidated:
            return TokenState.INVALID
        token, expiry = self.token, self.expiry
        if not token:
            try:
                cached = self._read()
            except (OSError, ValueError, KeyError, TypeError):
                cached = None
            if not cached or not cached[0]:
                return TokenState.ABSENT
            token, expiry = cached
        if expiry > self.clock() + self.buffer:
            return TokenState.VALID
        return TokenState.EXPIRING

    def get(self) -> Optional[str]:
        """Return a usable token or None."""
        if not self.token:
            self._load()
        if self.token and self.expiry > self.clock() + self.buffer:
            return self.token
        if self.token:
            logger.info("Cached token %s expired or inside the %ss buffer", mask(self.token), self.buffer)
            self._clear()
        return None

    def store(self, token: str, ttl: int):
        self.token = token
        self.expiry = self.clock() + ttl
        self._invalidated = False
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({"token": token, "expiry": int(self.expiry)}, fh)
        logger.debug("Stored token %s until %s", mask(token), int(self.expiry))

    def invalidate(self):
        """Forget the token in memory and on disk, whatever its expiry."""
        if self.token:
            logger.warning("Invalidating token %s", mask(self.token))
        self._clear()
        self._invalidated = True

    def _clear(self):
        self.token = None
        self.expiry = 0
        if os.path.exists(self.path):
            os.remove(self.path)

    def _read(self):
        """``(token, expiry)`` from the file, or None when there is no file."""
        if not os.path.exists(self.path):
            return None
        with open(self.path, encoding="utf-8") as fh:
            data = json.load(fh)
        return data["token"], float(data["expiry"])

    def _load(self) -> bool:
        try:
            cached = self._read()
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable token file %s: %s", self.path, e)
            os.remove(self.path)
            return False
        if cached is None:
            return False
        token, expiry = cached
        if not token or expiry <= self.clock() + self.buffer:
            logger.info("Token file %s holds an expired token; removing it", self.path)
            os.remove(self.path)
            return False
        self.token = token
        self.expiry = expiry
        return True
