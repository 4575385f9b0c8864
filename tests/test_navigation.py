"""Tests for route guards and navigation side effects of session transitions."""

import unittest
from unittest.mock import MagicMock

from app.client.navigation import NavigationEffects, resolve_redirect
from app.client.session import (
    REASON_EXPIRED,
    REASON_LOGIN,
    REASON_LOGOUT,
    CheckStarted,
    LoggedOut,
    ProfileLoaded,
    SessionState,
    SessionStore,
)

USER = {"id": 1, "role": "USER"}
ADMIN = {"id": 2, "role": "ADMIN"}

LOADING = SessionState()
ANONYMOUS = SessionState(loading=False)
SIGNED_IN = SessionState(is_authenticated=True, token="t", profile=USER, loading=False)
SIGNED_IN_ADMIN = SessionState(is_authenticated=True, token="t", profile=ADMIN, loading=False)


class TestResolveRedirect(unittest.TestCase):
    def test_loading_never_redirects(self) -> None:
        for path in ("/", "/auth/login", "/admin/parser", "/profile"):
            self.assertIsNone(resolve_redirect(LOADING, path), path)

    def test_authenticated_leaves_auth_pages(self) -> None:
        self.assertEqual(resolve_redirect(SIGNED_IN, "/auth/login"), "/")
        self.assertEqual(resolve_redirect(SIGNED_IN, "/auth/register"), "/")
        self.assertIsNone(resolve_redirect(SIGNED_IN, "/profile"))

    def test_admin_pages_require_admin(self) -> None:
        self.assertEqual(resolve_redirect(SIGNED_IN, "/admin/parser"), "/")
        self.assertIsNone(resolve_redirect(SIGNED_IN_ADMIN, "/admin/parser"))

    def test_anonymous_sent_to_login(self) -> None:
        self.assertEqual(resolve_redirect(ANONYMOUS, "/profile"), "/auth/login")
        self.assertEqual(resolve_redirect(ANONYMOUS, "/admin"), "/auth/login")
        self.assertIsNone(resolve_redirect(ANONYMOUS, "/"))
        self.assertIsNone(resolve_redirect(ANONYMOUS, "/auth/verify"))

    def test_prefix_must_be_a_path_segment(self) -> None:
        self.assertEqual(resolve_redirect(ANONYMOUS, "/authors"), "/auth/login")


class TestNavigationEffects(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SessionStore()
        self.navigate = MagicMock()

    def test_logout_always_goes_to_login(self) -> None:
        self.store.dispatch(ProfileLoaded(token="t", profile=USER))
        NavigationEffects(self.store, self.navigate, path="/movies/3")
        self.store.dispatch(LoggedOut(reason=REASON_LOGOUT))
        self.navigate.assert_called_once_with("/auth/login")

    def test_login_goes_home(self) -> None:
        effects = NavigationEffects(self.store, self.navigate, path="/auth/login")
        self.store.dispatch(ProfileLoaded(token="t", profile=USER, reason=REASON_LOGIN))
        self.navigate.assert_called_once_with("/")
        self.assertEqual(effects.path, "/")

    def test_expired_session_on_protected_page(self) -> None:
        self.store.dispatch(ProfileLoaded(token="t", profile=USER))
        NavigationEffects(self.store, self.navigate, path="/profile")
        self.store.dispatch(LoggedOut(reason=REASON_EXPIRED))
        self.navigate.assert_called_once_with("/auth/login")

    def test_no_navigation_while_loading(self) -> None:
        NavigationEffects(self.store, self.navigate, path="/profile")
        self.store.dispatch(CheckStarted())
        self.navigate.assert_not_called()

    def test_close_unsubscribes(self) -> None:
        effects = NavigationEffects(self.store, self.navigate, path="/profile")
        effects.close()
        self.store.dispatch(LoggedOut(reason=REASON_LOGOUT))
        self.navigate.assert_not_called()

    def test_set_path_tracks_user_navigation(self) -> None:
        self.store.dispatch(ProfileLoaded(token="t", profile=USER))
        effects = NavigationEffects(self.store, self.navigate, path="/")
        effects.set_path("/admin/parser")
        self.store.dispatch(ProfileLoaded(token="t", profile=USER))
        self.navigate.assert_called_once_with("/")


if __name__ == "__main__":
    unittest.main()
