"""Tests for request signing, URL normalisation and the allowlist."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from rebuilder.auth import sign, verify_signature
from rebuilder.config import Settings, settings
from rebuilder.errors import AuthError, ValidationError
from rebuilder.urls import is_allowed_url, normalize_url

_BODY = b'{"url":"https://example.com"}'
_SECRET = "s3cret"


class TestSign:
    def test_matches_hmac_sha256_hex(self) -> None:
        expected = hmac.new(_SECRET.encode(), _BODY, hashlib.sha256).hexdigest()
        assert sign(_BODY, _SECRET) == expected

    def test_different_keys_differ(self) -> None:
        assert sign(_BODY, "a") != sign(_BODY, "b")


class TestVerifySignature:
    def test_valid_signature_passes(self) -> None:
        verify_signature(sign(_BODY, _SECRET), _BODY, secret=_SECRET, mode="strict")

    def test_wrong_key_rejected(self) -> None:
        with pytest.raises(AuthError):
            verify_signature(sign(_BODY, "wrong"), _BODY, secret=_SECRET, mode="permissive")

    def test_signature_over_different_bytes_rejected(self) -> None:
        # Same JSON, different spacing: the digest covers bytes, not meaning.
        spaced = b'{"url": "https://example.com"}'
        with pytest.raises(AuthError):
            verify_signature(sign(spaced, _SECRET), _BODY, secret=_SECRET, mode="permissive")

    def test_surrounding_whitespace_in_header_ignored(self) -> None:
        verify_signature(f"  {sign(_BODY, _SECRET)} ", _BODY, secret=_SECRET, mode="strict")

    def test_missing_signature_accepted_in_permissive_mode(self) -> None:
        verify_signature(None, _BODY, secret=_SECRET, mode="permissive")
        verify_signature("   ", _BODY, secret=_SECRET, mode="permissive")

    def test_missing_signature_rejected_in_strict_mode(self) -> None:
        with pytest.raises(AuthError):
            verify_signature(None, _BODY, secret=_SECRET, mode="strict")

    def test_unavailable_raw_body_rejected_in_strict_mode(self) -> None:
        sig = sign(_BODY, _SECRET)
        with pytest.raises(AuthError):
            verify_signature(sig, None, secret=_SECRET, mode="strict",
                             parsed={"url": "https://example.com"})

    def test_unavailable_raw_body_reserialised_in_permissive_mode(self) -> None:
        sig = sign(_BODY, _SECRET)
        verify_signature(sig, None, secret=_SECRET, mode="permissive",
                         parsed={"url": "https://example.com"})

    def test_defaults_come_from_settings(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "cliq_secret", "from-settings")
        monkeypatch.setattr(settings, "auth_mode", "strict")
        verify_signature(sign(_BODY, "from-settings"), _BODY)
        with pytest.raises(AuthError):
            verify_signature(None, _BODY)


class TestAuthModeSetting:
    def test_defaults_to_permissive(self, monkeypatch) -> None:
        monkeypatch.delenv("AUTH_MODE", raising=False)
        monkeypatch.delenv("STRICT_HMAC", raising=False)
        assert Settings().auth_mode == "permissive"

    def test_strict_hmac_flag_selects_strict(self, monkeypatch) -> None:
        monkeypatch.delenv("AUTH_MODE", raising=False)
        monkeypatch.setenv("STRICT_HMAC", "true")
        assert Settings().auth_mode == "strict"

    def test_explicit_mode_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("AUTH_MODE", "permissive")
        monkeypatch.setenv("STRICT_HMAC", "true")
        assert Settings().auth_mode == "permissive"


class TestNormalizeUrl:
    def test_adds_https_when_scheme_missing(self) -> None:
        assert normalize_url("example.com") == "https://example.com"

    def test_keeps_existing_scheme(self) -> None:
        assert normalize_url("http://example.com/a") == "http://example.com/a"

    def test_trims_whitespace(self) -> None:
        assert normalize_url("  example.com \n") == "https://example.com"

    @pytest.mark.parametrize("raw", [None, "", "   ", 123, ["example.com"], {"url": "x"}])
    def test_empty_raises(self, raw) -> None:
        with pytest.raises(ValidationError):
            normalize_url(raw)


class TestIsAllowedUrl:
    def test_everything_allowed_when_not_enforced(self) -> None:
        assert is_allowed_url("https://anything.test/", enforce=False, domains=[]) is True

    def test_suffix_match_when_enforced(self) -> None:
        domains = ["example.com"]
        assert is_allowed_url("https://www.example.com/x", enforce=True, domains=domains)
        assert not is_allowed_url("https://example.org/", enforce=True, domains=domains)

    def test_unparseable_url_rejected(self) -> None:
        assert is_allowed_url("https://", enforce=False, domains=[]) is False
