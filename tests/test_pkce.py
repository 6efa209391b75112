"""Tests for S256 PKCE verification."""

from __future__ import annotations

from social_mcp.auth.pkce import s256_challenge, verify_pkce

# RFC 7636 Appendix B
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_s256_matches_rfc_vector() -> None:
    assert s256_challenge(RFC_VERIFIER) == RFC_CHALLENGE


def test_challenge_has_no_padding() -> None:
    assert "=" not in s256_challenge("any-verifier")


def test_valid_verifier() -> None:
    assert verify_pkce(RFC_CHALLENGE, "S256", RFC_VERIFIER) is True


def test_method_defaults_to_s256() -> None:
    assert verify_pkce(RFC_CHALLENGE, None, RFC_VERIFIER) is True


def test_wrong_verifier() -> None:
    assert verify_pkce(RFC_CHALLENGE, "S256", "wrong-verifier") is False


def test_missing_verifier_when_challenge_stored() -> None:
    assert verify_pkce(RFC_CHALLENGE, "S256", None) is False
    assert verify_pkce(RFC_CHALLENGE, "S256", "") is False


def test_no_challenge_needs_no_verifier() -> None:
    assert verify_pkce(None, None, None) is True
    assert verify_pkce(None, None, "ignored") is True


def test_plain_method_rejected() -> None:
    assert verify_pkce(RFC_VERIFIER, "plain", RFC_VERIFIER) is False


def test_non_ascii_verifier_rejected() -> None:
    assert verify_pkce(RFC_CHALLENGE, "S256", "vérifier") is False
