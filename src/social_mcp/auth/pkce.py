"""PKCE (RFC 7636) verification. Only the S256 method is supported."""

from __future__ import annotations

import base64
import hashlib
import hmac

S256 = "S256"
SUPPORTED_METHODS = (S256,)


def s256_challenge(code_verifier: str) -> str:
    """base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_pkce(
    code_challenge: str | None,
    code_challenge_method: str | None,
    code_verifier: str | None,
) -> bool:
    """Check a client's verifier against the challenge stored at authorize time.

    A flow that stored no challenge needs no verifier. Once a challenge was
    stored, a missing verifier fails.
    """
    if not code_challenge:
        return True
    if not code_verifier:
        return False
    if (code_challenge_method or S256) != S256:
        return False
    try:
        expected = s256_challenge(code_verifier)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode(), code_challenge.encode())
