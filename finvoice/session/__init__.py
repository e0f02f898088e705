"""
Session package.

Who the user is, where their writes go, and when their profile is re-read.
"""

from finvoice.session.identity import (
    LOCAL_ID_PREFIX,
    IdentityProvider,
    VerificationResult,
    is_local_only,
    mint_local_identity,
)
from finvoice.session.local_cache import LocalExpenseCache
from finvoice.session.manager import SessionManager
from finvoice.session.refresh import RefreshPolicy, RefreshScheduler, merge_profile

__all__ = [
    "LOCAL_ID_PREFIX",
    "IdentityProvider",
    "LocalExpenseCache",
    "RefreshPolicy",
    "RefreshScheduler",
    "SessionManager",
    "VerificationResult",
    "is_local_only",
    "merge_profile",
    "mint_local_identity",
]
