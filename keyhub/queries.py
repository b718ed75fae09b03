"""Read-only aggregate views for administrators."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .credentials import CredentialStore
from .database import utcnow
from .expiry import is_active
from .models import CredentialListing, UserKeyCounts
from .users import UserDirectory


class QueryService:
    """Compose the user directory and credential store into listing views."""

    def __init__(
        self,
        users: UserDirectory,
        credentials: CredentialStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._users = users
        self._credentials = credentials
        self._clock = clock or utcnow

    def users_with_key_counts(self, now: Optional[datetime] = None) -> List[UserKeyCounts]:
        """Every user, newest first, with total and currently active key counts."""

        current = now if now is not None else self._clock()
        totals: Dict[int, int] = defaultdict(int)
        active: Dict[int, int] = defaultdict(int)
        for credential in self._credentials.list_all():
            totals[credential.user_id] += 1
            if is_active(credential.expires_at, current):
                active[credential.user_id] += 1

        return [
            UserKeyCounts(user=user, total_keys=totals[user.id], active_keys=active[user.id])
            for user in self._users.list_all()
        ]

    def keys_with_owners(self, now: Optional[datetime] = None) -> List[CredentialListing]:
        current = now if now is not None else self._clock()
        return self._credentials.list_all_with_owners(now=current)


__all__ = ["QueryService"]
