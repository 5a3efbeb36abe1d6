"""
Security helpers for password hashing and JWT session tokens.

Tokens are compact HS256 JWTs carrying the identity claims. Verification is
total: any malformed, forged or expired token yields a `TokenInvalid` value
rather than an exception, because bad input from clients is expected.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional, Union

PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ROUNDS = 260000

_JWT_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    email: str
    role_id: str
    korda_id: Optional[str]
    iat: int
    exp: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "sub": self.sub,
            "email": self.email,
            "roleId": self.role_id,
            "kordaId": self.korda_id,
            "iat": self.iat,
            "exp": self.exp,
        }


@dataclass(frozen=True)
class TokenInvalid:
    reason: str

    @property
    def expired(self) -> bool:
        return self.reason == "expired"


TokenVerification = Union[TokenClaims, TokenInvalid]


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def hash_password(password: str, *, rounds: int = PASSWORD_HASH_ROUNDS) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), rounds)
    return f"{PASSWORD_HASH_ALGO}${rounds}${salt}${digest.hex()}"


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash of a random secret, checked in place of a missing stored credential."""
    return hash_password(secrets.token_urlsafe(16))


def verify_password(password: str, encoded: Optional[str]) -> bool:
    # No stored credential means password login is not possible for this account.
    if not encoded or not password:
        return False
    try:
        algo, rounds_raw, salt, expected_hex = encoded.split("$", 3)
        if algo != PASSWORD_HASH_ALGO:
            return False
        rounds = int(rounds_raw)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), rounds)
    return secrets.compare_digest(digest.hex(), expected_hex)


def _sign(secret: str, signing_input: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()


def create_access_token(
    secret: str,
    *,
    user_id: str,
    email: str,
    role_id: str,
    korda_id: Optional[str],
    expires_in: timedelta,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise RuntimeError("JWT secret is not configured")
    issued = now or datetime.now(timezone.utc)
    claims = TokenClaims(
        sub=user_id,
        email=email,
        role_id=role_id,
        korda_id=korda_id,
        iat=int(issued.timestamp()),
        exp=int((issued + expires_in).timestamp()),
    )
    signing_input = (
        f"{_b64url_encode(json.dumps(_JWT_HEADER, separators=(',', ':')).encode('utf-8'))}."
        f"{_b64url_encode(json.dumps(claims.to_payload(), separators=(',', ':')).encode('utf-8'))}"
    )
    return f"{signing_input}.{_b64url_encode(_sign(secret, signing_input))}"


def _claims_from_payload(payload: dict[str, Any]) -> Optional[TokenClaims]:
    sub = payload.get("sub")
    email = payload.get("email")
    role_id = payload.get("roleId")
    korda_id = payload.get("kordaId")
    iat = payload.get("iat")
    exp = payload.get("exp")
    if not isinstance(sub, str) or not sub:
        return None
    if not isinstance(email, str) or not isinstance(role_id, str) or not role_id:
        return None
    if korda_id is not None and not isinstance(korda_id, str):
        return None
    if not isinstance(iat, int) or not isinstance(exp, int):
        return None
    return TokenClaims(sub=sub, email=email, role_id=role_id, korda_id=korda_id, iat=iat, exp=exp)


def verify_token(secret: str, token: str, *, now: Optional[datetime] = None) -> TokenVerification:
    if not secret or not token or not token.isascii():
        return TokenInvalid("malformed")
    parts = token.split(".")
    if len(parts) != 3:
        return TokenInvalid("malformed")
    header_b64, payload_b64, signature_b64 = parts
    try:
        header = json.loads(_b64url_decode(header_b64).decode("utf-8"))
        provided_sig = _b64url_decode(signature_b64)
    except (ValueError, UnicodeDecodeError):
        return TokenInvalid("malformed")
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        return TokenInvalid("malformed")
    expected_sig = _sign(secret, f"{header_b64}.{payload_b64}")
    if not secrets.compare_digest(expected_sig, provided_sig):
        return TokenInvalid("signature")
    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return TokenInvalid("malformed")
    if not isinstance(payload, dict):
        return TokenInvalid("malformed")
    claims = _claims_from_payload(payload)
    if claims is None:
        return TokenInvalid("claims")
    now_ts = int((now or datetime.now(timezone.utc)).timestamp())
    if now_ts >= claims.exp:
        return TokenInvalid("expired")
    return claims
