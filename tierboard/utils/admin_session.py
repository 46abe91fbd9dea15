from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from tierboard.config import Config
from tierboard.exceptions import AuthorizationError

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AdminSession:
    """
    Proof that the caller may mutate rankings, valid until expires_at.

    Issued from Discord role membership and handed explicitly to the code
    that needs it. The ranking core never sees it. A cached session only
    saves reissuing: callers run refresh() with the member's current roles
    on every use, so removing the role takes effect immediately.
    """

    role: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def issue(
        cls,
        role: str = ADMIN_ROLE,
        ttl_seconds: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> "AdminSession":
        issued = now or datetime.now(timezone.utc)
        ttl = Config.ADMIN_SESSION_TTL if ttl_seconds is None else ttl_seconds
        return cls(role=role, issued_at=issued, expires_at=issued + timedelta(seconds=ttl))

    @staticmethod
    def holds_admin_role(
        member_role_ids: Iterable[int],
        admin_role_ids: Optional[Iterable[int]] = None
    ) -> bool:
        allowed = set(Config.ADMIN_ROLE_IDS if admin_role_ids is None else admin_role_ids)
        return bool(allowed.intersection(member_role_ids))

    @classmethod
    def from_role_ids(
        cls,
        member_role_ids: Iterable[int],
        admin_role_ids: Optional[Iterable[int]] = None,
        now: Optional[datetime] = None
    ) -> "AdminSession":
        """
        Raises:
            AuthorizationError: The member holds none of the admin roles
        """
        if not cls.holds_admin_role(member_role_ids, admin_role_ids):
            raise AuthorizationError("admin role required")
        return cls.issue(now=now)

    def refresh(
        self,
        member_role_ids: Iterable[int],
        admin_role_ids: Optional[Iterable[int]] = None,
        now: Optional[datetime] = None
    ) -> "AdminSession":
        """
        Re-check the member's current roles against a cached session.

        Returns this session while it is live, or a new one once it expired.
        A member who lost the admin role is refused even before expiry.

        Raises:
            AuthorizationError: The member holds none of the admin roles
        """
        member_role_ids = list(member_role_ids)
        if not self.holds_admin_role(member_role_ids, admin_role_ids):
            raise AuthorizationError("admin role required")
        if self.is_expired(now):
            return self.from_role_ids(member_role_ids, admin_role_ids, now=now)
        return self

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def require(self, role: str = ADMIN_ROLE, now: Optional[datetime] = None) -> None:
        if self.is_expired(now):
            raise AuthorizationError("admin session expired")
        if self.role != role:
            raise AuthorizationError(f"role '{role}' required")
