from __future__ import annotations

import asyncio
import hashlib
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..logging_conf import get_logger

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "CredentialRecord",
    "CredentialStore",
    "hash_secret",
]

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60
_SECRET_BYTES = 32

logger = get_logger("domain.credentials")


def hash_secret(secret: str) -> str:
    """Return the SHA-256 hex digest used as the map key for a secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CredentialRecord:
    plaintext: str
    created_at_ms: int
    expires_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_ms


class CredentialStore:
    """
    In-memory API key store with sliding-window expiry.

    - Records are keyed by the SHA-256 digest of the secret, never by the
      secret itself.
    - Expiry is checked lazily on every lookup; `sweep()` is the periodic
      safety net that bounds memory for abandoned keys.
    - A single lock guards the map so the sweeper task and request handlers
      never interleave a read-modify-write.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock
        self._records: dict[str, CredentialRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_ms / 1000

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _store(self, secret: str) -> CredentialRecord:
        now = self._now_ms()
        record = CredentialRecord(
            plaintext=secret,
            created_at_ms=now,
            expires_at_ms=now + self._ttl_ms,
        )
        with self._lock:
            self._records[hash_secret(secret)] = record
        return record

    def issue(self) -> str:
        """Generate a 256-bit hex secret, store it and return the plaintext."""
        secret = secrets.token_hex(_SECRET_BYTES)
        record = self._store(secret)
        logger.info(
            "key.issue",
            extra={
                "event": "key_issue",
                "key_hash": hash_secret(secret)[:8],
                "expires_at_ms": record.expires_at_ms,
            },
        )
        return secret

    def expires_at_ms(self, secret: str) -> int | None:
        """Return the expiry of a live secret, or None."""
        digest = hash_secret(secret)
        with self._lock:
            record = self._records.get(digest)
        if record is None or record.is_expired(self._now_ms()):
            return None
        return record.expires_at_ms

    def validate(self, secret: str) -> str | None:
        """Return the plaintext for a live secret; expired records are dropped."""
        digest = hash_secret(secret)
        now = self._now_ms()
        with self._lock:
            record = self._records.get(digest)
            if record is None:
                return None
            if record.is_expired(now):
                del self._records[digest]
                logger.info(
                    "key.expired",
                    extra={"event": "key_expired", "key_hash": digest[:8]},
                )
                return None
            return record.plaintext

    def refresh(self, secret: str) -> bool:
        """Push back the expiry of a live secret.

        Returns False, and stores nothing, when the secret was never issued,
        has been revoked or has already expired.
        """
        digest = hash_secret(secret)
        now = self._now_ms()
        with self._lock:
            record = self._records.get(digest)
            if record is None or record.is_expired(now):
                return False
            self._records[digest] = CredentialRecord(
                plaintext=record.plaintext,
                created_at_ms=now,
                expires_at_ms=now + self._ttl_ms,
            )
        return True

    def revoke(self, secret: str) -> bool:
        digest = hash_secret(secret)
        with self._lock:
            deleted = self._records.pop(digest, None) is not None
        logger.info(
            "key.revoke",
            extra={"event": "key_revoke", "key_hash": digest[:8], "deleted": deleted},
        )
        return deleted

    def sweep(self) -> int:
        """Delete every expired record and return how many were evicted."""
        now = self._now_ms()
        with self._lock:
            expired = [d for d, r in self._records.items() if r.is_expired(now)]
            for digest in expired:
                del self._records[digest]
        for digest in expired:
            logger.info("key.sweep", extra={"event": "key_sweep", "key_hash": digest[:8]})
        return len(expired)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    async def run_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Sweep forever every `interval_seconds`; stops when the task is cancelled."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()
