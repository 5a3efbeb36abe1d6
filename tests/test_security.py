import json
from datetime import datetime, timedelta, timezone

from nasuha_connect.core import security
from nasuha_connect.core.security import (
    TokenClaims,
    TokenInvalid,
    create_access_token,
    hash_password,
    verify_password,
    verify_token,
)

SECRET = "unit-test-secret-value-0123456789abcdef"


def _token(**overrides) -> str:
    values = dict(
        user_id="u-1",
        email="a@nasuha.or.id",
        role_id="r-1",
        korda_id=None,
        expires_in=timedelta(hours=1),
    )
    values.update(overrides)
    return create_access_token(SECRET, **values)


def test_password_hash_roundtrip():
    encoded = hash_password("s3cret-pass", rounds=1000)
    assert encoded.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret-pass", encoded) is True
    assert verify_password("wrong-pass", encoded) is False


def test_password_hash_is_salted():
    assert hash_password("same", rounds=1000) != hash_password("same", rounds=1000)


def test_missing_or_broken_hash_never_verifies():
    assert verify_password("anything", None) is False
    assert verify_password("anything", "") is False
    assert verify_password("anything", "not-a-hash") is False
    assert verify_password("anything", "bcrypt$10$salt$abc") is False


def test_token_roundtrip_carries_claims():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    token = _token(korda_id="k-1", now=now)
    claims = verify_token(SECRET, token, now=now + timedelta(minutes=5))
    assert isinstance(claims, TokenClaims)
    assert claims.sub == "u-1"
    assert claims.email == "a@nasuha.or.id"
    assert claims.role_id == "r-1"
    assert claims.korda_id == "k-1"
    assert claims.exp - claims.iat == 3600


def test_expired_token_is_reported_as_expired():
    issued = datetime(2026, 1, 1, tzinfo=timezone.utc)
    token = _token(now=issued)
    result = verify_token(SECRET, token, now=issued + timedelta(hours=2))
    assert isinstance(result, TokenInvalid)
    assert result.expired


def test_wrong_secret_or_tampered_payload_fails_signature():
    token = _token()
    assert verify_token("another-secret-value-0123456789abcdef", token) == TokenInvalid("signature")

    header, payload, signature = token.split(".")
    forged = json.loads(security._b64url_decode(payload))
    forged["roleId"] = "r-admin"
    forged_payload = security._b64url_encode(json.dumps(forged).encode("utf-8"))
    result = verify_token(SECRET, f"{header}.{forged_payload}.{signature}")
    assert result == TokenInvalid("signature")
    assert not result.expired


def test_garbage_tokens_are_malformed():
    header = security._b64url_encode(b'{"alg":"HS256","typ":"JWT"}')
    for value in ["", "abc", "a.b", "a.b.c.d", "!!!.???.***", f"{header}.\u00e9\u00e9\u00e9.abcd", "\u00e9.\u00e9.\u00e9"]:
        result = verify_token(SECRET, value)
        assert isinstance(result, TokenInvalid)
        assert result.reason in {"malformed", "signature"}


def test_signed_token_with_missing_claims_is_rejected():
    header = security._b64url_encode(b'{"alg":"HS256","typ":"JWT"}')
    payload = security._b64url_encode(b'{"email":"a@nasuha.or.id","iat":1,"exp":9999999999}')
    signature = security._b64url_encode(security._sign(SECRET, f"{header}.{payload}"))
    assert verify_token(SECRET, f"{header}.{payload}.{signature}") == TokenInvalid("claims")
