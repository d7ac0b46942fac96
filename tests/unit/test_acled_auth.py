"""Unit tests for displacementatlas.clients.acled_auth.AcledTokenManager.

Covers:
- Password login: form payload, token and expiry bookkeeping
- Proactive refresh below the threshold (driven by a fake clock)
- Refresh failure falling back to login; both failing raises
- Pre-issued tokens and missing credentials
"""

from __future__ import annotations

from dataclasses import replace

import pytest
import requests

from displacementatlas.clients.acled_auth import AcledTokenManager, TokenState
from displacementatlas.errors import AuthenticationError


def _token_body(access: str = "access-1", refresh: str = "refresh-1", expires_in: int = 7200):
    return {"access_token": access, "refresh_token": refresh, "expires_in": expires_in,
            "token_type": "Bearer"}


def _grant(call) -> str:
    return call.kwargs["data"]["grant_type"]


# ── Login ─────────────────────────────────────────────────────────────────────────

class TestLogin:
    def test_first_token_uses_password_grant(self, atlas_config, mock_session, response_factory, fake_clock):
        """An unauthenticated manager logs in with the configured credentials."""
        mock_session.post.return_value = response_factory(200, _token_body())
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)

        assert manager.get_token() == "access-1"

        data = mock_session.post.call_args.kwargs["data"]
        assert data["grant_type"] == "password"
        assert data["username"] == "analyst@example.org"
        assert data["password"] == "secret"
        assert data["client_id"] == "acled"
        assert manager.state == TokenState.AUTHENTICATED
        assert manager.refresh_token == "refresh-1"
        assert manager.expires_at == fake_clock() + 7200

    def test_token_reused_while_valid(self, atlas_config, mock_session, response_factory, fake_clock):
        mock_session.post.return_value = response_factory(200, _token_body())
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)

        manager.get_token()
        fake_clock.advance(60)
        manager.get_token()

        assert mock_session.post.call_count == 1

    def test_rejected_login_raises(self, atlas_config, mock_session, response_factory, fake_clock):
        mock_session.post.return_value = response_factory(401, {"error": "invalid_grant"})
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)

        with pytest.raises(AuthenticationError) as excinfo:
            manager.get_token()
        assert excinfo.value.status_code == 401

    def test_response_without_access_token_raises(self, atlas_config, mock_session, response_factory):
        mock_session.post.return_value = response_factory(200, {"token_type": "Bearer"})
        with pytest.raises(AuthenticationError, match="missing access_token"):
            AcledTokenManager(atlas_config, session=mock_session).login()

    def test_transport_error_wrapped(self, atlas_config, mock_session):
        mock_session.post.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(AuthenticationError):
            AcledTokenManager(atlas_config, session=mock_session).login()

    def test_no_credentials(self, atlas_config, mock_session):
        """Without a password or any token, login must fail without a request."""
        config = replace(atlas_config, acled_username=None, acled_password=None)
        manager = AcledTokenManager(config, session=mock_session)

        with pytest.raises(AuthenticationError):
            manager.get_token()
        mock_session.post.assert_not_called()

    def test_auth_headers(self, atlas_config, mock_session, response_factory):
        mock_session.post.return_value = response_factory(200, _token_body(access="tok"))
        headers = AcledTokenManager(atlas_config, session=mock_session).auth_headers()
        assert headers["Authorization"] == "Bearer tok"


# ── Refresh ───────────────────────────────────────────────────────────────────────

class TestRefresh:
    def test_proactive_refresh_below_threshold(self, atlas_config, mock_session, response_factory, fake_clock):
        """Once remaining validity drops under the threshold the refresh grant is used."""
        mock_session.post.side_effect = [
            response_factory(200, _token_body("access-1", "refresh-1", expires_in=7200)),
            response_factory(200, _token_body("access-2", "refresh-2", expires_in=7200)),
        ]
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)
        manager.get_token()

        fake_clock.advance(7200 - 3600 + 1)
        assert manager.get_token() == "access-2"

        refresh_call = mock_session.post.call_args_list[1]
        assert _grant(refresh_call) == "refresh_token"
        assert refresh_call.kwargs["data"]["refresh_token"] == "refresh-1"
        assert manager.refresh_token == "refresh-2"

    def test_no_refresh_just_above_threshold(self, atlas_config, mock_session, response_factory, fake_clock):
        mock_session.post.return_value = response_factory(200, _token_body(expires_in=7200))
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)
        manager.get_token()

        fake_clock.advance(7200 - 3600 - 1)
        manager.get_token()

        assert mock_session.post.call_count == 1

    def test_refresh_failure_falls_back_to_login(self, atlas_config, mock_session, response_factory, fake_clock):
        mock_session.post.side_effect = [
            response_factory(200, _token_body("access-1")),
            response_factory(400, {"error": "invalid_grant"}),
            response_factory(200, _token_body("access-3")),
        ]
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)
        manager.get_token()

        manager.refresh()

        assert manager.access_token == "access-3"
        assert [_grant(c) for c in mock_session.post.call_args_list] == [
            "password", "refresh_token", "password",
        ]

    def test_refresh_and_login_both_fail(self, atlas_config, mock_session, response_factory, fake_clock):
        mock_session.post.side_effect = [
            response_factory(200, _token_body()),
            response_factory(400, {}),
            response_factory(401, {}),
        ]
        manager = AcledTokenManager(atlas_config, session=mock_session, clock=fake_clock)
        manager.get_token()

        with pytest.raises(AuthenticationError, match="refresh failed"):
            manager.refresh()
        assert manager.state == TokenState.UNAUTHENTICATED

    def test_refresh_token_only_configuration(self, atlas_config, mock_session, response_factory, fake_clock):
        """With only a refresh token configured, the first token comes from a refresh."""
        config = replace(atlas_config, acled_username=None, acled_password=None,
                         acled_refresh_token="stored-refresh")
        mock_session.post.return_value = response_factory(200, _token_body("access-r"))
        manager = AcledTokenManager(config, session=mock_session, clock=fake_clock)

        assert manager.get_token() == "access-r"
        assert _grant(mock_session.post.call_args) == "refresh_token"


class TestPreIssuedToken:
    def test_configured_access_token_used_without_request(self, atlas_config, mock_session, fake_clock):
        config = replace(atlas_config, acled_access_token="pre-issued")
        manager = AcledTokenManager(config, session=mock_session, clock=fake_clock)

        assert manager.get_token() == "pre-issued"
        mock_session.post.assert_not_called()

    def test_invalidate_forces_login(self, atlas_config, mock_session, response_factory, fake_clock):
        config = replace(atlas_config, acled_access_token="pre-issued")
        mock_session.post.return_value = response_factory(200, _token_body("fresh"))
        manager = AcledTokenManager(config, session=mock_session, clock=fake_clock)

        manager.invalidate()

        assert manager.get_token() == "fresh"
