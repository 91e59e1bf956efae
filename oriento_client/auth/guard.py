"""
Access guard consulted by the navigation layer before entering protected areas.
"""

import logging

from oriento_shared.interfaces import INavigator
from oriento_shared.models import AccessDecision

from oriento_client.auth.session_store import SessionStore

logger = logging.getLogger(__name__)


class AccessGuard:
    """
    Permits or denies entry based on the session store only.

    Never touches the network; a denied check redirects to the login route.
    """

    def __init__(self, session_store: SessionStore, navigator: INavigator, login_route: str = '/login'):
        self.session_store = session_store
        self.navigator = navigator
        self.login_route = login_route

    def check(self) -> AccessDecision:
        """Decide whether the current session may enter a protected area."""
        if self.session_store.is_authenticated():
            return AccessDecision(allowed=True)
        return AccessDecision(allowed=False, redirect_to=self.login_route)

    def can_enter(self) -> bool:
        """
        Check access, redirecting to the login route on deny.

        Returns:
            True if the session is authenticated
        """
        decision = self.check()
        if not decision.allowed:
            logger.info(f"Access denied, redirecting to {decision.redirect_to}")
            self.navigator.navigate(decision.redirect_to)
        return decision.allowed
