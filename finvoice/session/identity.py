"""
Identity helpers.

A local-only identity is a string carrying the reserved "local_" prefix.
is_local_only() is the one place that prefix is checked; everything that
gates on "may this session reach the remote store" goes through it.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel


LOCAL_ID_PREFIX = "local_"

_mint_lock = threading.Lock()
_last_minted_ms = 0


def is_local_only(identity: Optional[str]) -> bool:
    """True if the identity was minted locally and is never synced."""
    return bool(identity) and identity.startswith(LOCAL_ID_PREFIX)


def mint_local_identity() -> str:
    """
    Mint a local-only id of the form local_<epoch-ms>.

    Ids are strictly increasing within the process, even when two are
    minted in the same millisecond.
    """
    global _last_minted_ms

    with _mint_lock:
        now_ms = int(time.time() * 1000)
        if now_ms <= _last_minted_ms:
            now_ms = _last_minted_ms + 1
        _last_minted_ms = now_ms

    return f"{LOCAL_ID_PREFIX}{now_ms}"


class VerificationResult(BaseModel):
    """Outcome of verifying a credential with the identity provider."""

    success: bool
    identity: Optional[str] = None
    error: Optional[str] = None


class IdentityProvider(ABC):
    """
    Verifies credentials issued by an external identity service
    (phone OTP via Firebase in production).
    """

    @abstractmethod
    async def verify_credential(self, token: str) -> VerificationResult:
        pass
