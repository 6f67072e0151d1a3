"""
In-memory login throttle with a lockout window.

Failed sign-ins are counted per normalized email. Once the count reaches
``max_attempts`` the email is locked until the lockout window elapses; a
successful sign-in resets it. State lives in the process only.
"""

from datetime import datetime, timedelta

from souq_data.constants import LOGIN_LOCKOUT_SECONDS, LOGIN_MAX_ATTEMPTS
from souq_data.utils.datetime import utc_now


class LoginThrottle:
    """
    Failed-login counter with time-boxed lockouts.

    Attributes:
        max_attempts: Failures that trigger a lockout (default: 5)
        lockout: How long a lockout lasts (default: 15 minutes)
        _attempts: Failure count per key
        _locked_until: Lockout expiry per key

    Example:
        >>> throttle = LoginThrottle()
        >>> throttle.record_failure("user@yallasouq.ps")
        False
        >>> throttle.is_blocked("user@yallasouq.ps")
        False
        >>> throttle.reset("user@yallasouq.ps")
    """

    def __init__(
        self,
        max_attempts: int = LOGIN_MAX_ATTEMPTS,
        lockout_seconds: int = LOGIN_LOCKOUT_SECONDS,
    ):
        self.max_attempts = max_attempts
        self.lockout = timedelta(seconds=lockout_seconds)
        self._attempts: dict[str, int] = {}
        self._locked_until: dict[str, datetime] = {}

    def is_blocked(self, key: str) -> bool:
        """
        Check whether the key is currently locked out.

        Expired lockouts are cleared, together with their failure count.

        Args:
            key: Normalized email address

        Returns:
            True while the lockout window is open
        """
        until = self._locked_until.get(key)
        if until is None:
            return False
        if utc_now() < until:
            return True
        # Expired - forget the lockout and start counting afresh
        self.reset(key)
        return False

    def record_failure(self, key: str) -> bool:
        """
        Count one failed attempt.

        Args:
            key: Normalized email address

        Returns:
            True if this failure started a lockout
        """
        count = self._attempts.get(key, 0) + 1
        self._attempts[key] = count
        if count >= self.max_attempts:
            self._locked_until[key] = utc_now() + self.lockout
            return True
        return False

    def reset(self, key: str) -> None:
        """Forget failures and any lockout for the key."""
        self._attempts.pop(key, None)
        self._locked_until.pop(key, None)

    def attempts(self, key: str) -> int:
        return self._attempts.get(key, 0)

    def locked_until(self, key: str) -> datetime | None:
        return self._locked_until.get(key) if self.is_blocked(key) else None

    def clear(self) -> None:
        self._attempts.clear()
        self._locked_until.clear()
