"""Tests for admin API authentication."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from appointment_dm.auth import _check_admin, require_admin_token, require_admin_ws


# ── Fixture: mock settings for auth tests ──────────────────────────

class FakeSettings:
    def __init__(self, admin_api_key="", debug=False):
        self.admin_api_key = admin_api_key
        self.debug = debug


class FakeWebSocket:
    def __init__(self):
        self.closed_with = None

    async def close(self, code=1000, reason=None):
        self.closed_with = code


# ── Tests: HTTP bearer token ───────────────────────────────────────

class TestRequireAdminToken:
    async def test_rejects_no_token_when_key_set(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="secret"))
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=None)
        assert exc_info.value.status_code == 401

    async def test_rejects_wrong_token(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="secret"))
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="wrong")
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=creds)
        assert exc_info.value.status_code == 401

    async def test_allows_correct_token(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="secret"))
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials="secret")
        await require_admin_token(credentials=creds)

    async def test_allows_no_key_debug_mode(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="", debug=True))
        await require_admin_token(credentials=None)

    async def test_rejects_no_key_production(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="", debug=False))
        with pytest.raises(HTTPException) as exc_info:
            await require_admin_token(credentials=None)
        assert exc_info.value.status_code == 403


# ── Tests: WebSocket query token ───────────────────────────────────

class TestRequireAdminWs:
    async def test_accepts_matching_token(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="secret"))
        ws = FakeWebSocket()
        assert await require_admin_ws(ws, token="secret") is True
        assert ws.closed_with is None

    async def test_wrong_token_closes_4001(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key="secret"))
        ws = FakeWebSocket()
        assert await require_admin_ws(ws, token="nope") is False
        assert ws.closed_with == 4001

    async def test_unconfigured_production_closes_4003(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings())
        ws = FakeWebSocket()
        assert await require_admin_ws(ws, token="") is False
        assert ws.closed_with == 4003

    async def test_unconfigured_debug_allows(self, monkeypatch):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(debug=True))
        assert await require_admin_ws(FakeWebSocket(), token="") is True


# ── Tests: shared refusal check ────────────────────────────────────

class TestCheckAdmin:
    @pytest.mark.parametrize("key, debug, token, expected", [
        ("secret", False, "secret", None),
        ("secret", True, "nope", 401),
        ("secret", False, None, 401),
        ("", False, "anything", 403),
        ("", True, None, None),
    ])
    def test_matrix(self, monkeypatch, key, debug, token, expected):
        monkeypatch.setattr("appointment_dm.auth.settings", FakeSettings(admin_api_key=key, debug=debug))
        assert _check_admin(token) == expected
