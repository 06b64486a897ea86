"""
Owner/Session Context

The ledger never manages logins itself. It only asks "who is the
current owner?" and treats a missing answer as the logged-out state:
reads come back empty and writes report NOT_AUTHENTICATED.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SessionContext(ABC):
    """Supplies the id of the signed-in user, if any."""

    @abstractmethod
    def current_owner_id(self) -> Optional[str]:
        """Return the current owner id, or None when logged out."""
        pass


class StaticSession(SessionContext):
    """
    Session with a fixed owner.

    sign_in / sign_out let tests and single-user deployments switch
    the owner without an auth provider.
    """

    def __init__(self, owner_id: Optional[str] = None):
        self._owner_id = owner_id or None

    def current_owner_id(self) -> Optional[str]:
        return self._owner_id

    def sign_in(self, owner_id: str) -> None:
        self._owner_id = owner_id or None

    def sign_out(self) -> None:
        self._owner_id = None
