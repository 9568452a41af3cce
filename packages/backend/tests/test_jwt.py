"""TokenCodec tests — signing, expiry, and claim-set validation.

Learn: A token must pass three gates: the signature (right secret for
its kind), the expiry, and the exact claim schema. Each gate gets its
own tests below.
"""

import time
import uuid
from datetime import timedelta

import jwt
import pytest

from collabspec.auth.jwt import AccessPayload, RefreshPayload, TokenCodec
from collabspec.auth.roles import Role
from collabspec.errors import ErrorKind, TokenExpired, TokenInvalid

ACCESS_SECRET = "access-secret"
REFRESH_SECRET = "refresh-secret"


@pytest.fixture()
def codec():
    return TokenCodec(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture()
def access_payload():
    return AccessPayload(
        user_id=str(uuid.uuid4()),
        email="alice@example.com",
        role=Role.DESIGNER,
        timezone="Europe/Berlin",
        session_id=str(uuid.uuid4()),
    )


@pytest.fixture()
def refresh_payload():
    return RefreshPayload(
        user_id=str(uuid.uuid4()),
        session_id=str(uuid.uuid4()),
        token_version=1,
    )


# ═══════════════════════════════════════════════════════════
# Round trip
# ═══════════════════════════════════════════════════════════


def test_access_round_trip(codec, access_payload):
    token = codec.issue_access(access_payload, timedelta(minutes=15))
    claims = codec.verify_access(token)

    assert claims.model_dump(exclude={"iat", "exp"}) == access_payload.model_dump()
    assert claims.exp - claims.iat == 15 * 60


def test_refresh_round_trip(codec, refresh_payload):
    token = codec.issue_refresh(refresh_payload, timedelta(days=7))
    claims = codec.verify_refresh(token)

    assert claims.model_dump(exclude={"iat", "exp"}) == refresh_payload.model_dump()
    assert claims.exp - claims.iat == 7 * 86400


def test_wire_claims_are_camel_case(codec, access_payload):
    token = codec.issue_access(access_payload, timedelta(minutes=15))
    raw = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])
    assert set(raw) == {"userId", "email", "role", "timezone", "sessionId", "iat", "exp"}
    assert raw["role"] == "designer"


# ═══════════════════════════════════════════════════════════
# Expiry
# ═══════════════════════════════════════════════════════════


def test_zero_ttl_access_token_is_expired(codec, access_payload):
    token = codec.issue_access(access_payload, timedelta(0))
    with pytest.raises(TokenExpired):
        codec.verify_access(token)


def test_zero_ttl_refresh_token_is_expired(codec, refresh_payload):
    token = codec.issue_refresh(refresh_payload, timedelta(0))
    with pytest.raises(TokenExpired):
        codec.verify_refresh(token)


def test_token_expired_after_exp(access_payload):
    """Issued an hour ago with a 15 minute TTL."""
    past = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, clock=lambda: time.time() - 3600)
    token = past.issue_access(access_payload, timedelta(minutes=15))
    with pytest.raises(TokenExpired):
        TokenCodec(ACCESS_SECRET, REFRESH_SECRET).verify_access(token)


def test_expired_and_invalid_look_the_same():
    """No oracle: both report INVALID_TOKEN with the same message."""
    expired, invalid = TokenExpired(), TokenInvalid()
    assert expired.kind == invalid.kind == ErrorKind.INVALID_TOKEN
    assert expired.message == invalid.message


# ═══════════════════════════════════════════════════════════
# Secrets
# ═══════════════════════════════════════════════════════════


def test_refresh_token_rejected_as_access(codec, refresh_payload):
    token = codec.issue_refresh(refresh_payload, timedelta(days=7))
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)


def test_access_token_rejected_as_refresh(codec, access_payload):
    token = codec.issue_access(access_payload, timedelta(minutes=15))
    with pytest.raises(TokenInvalid):
        codec.verify_refresh(token)


def test_kinds_not_interchangeable_with_shared_secret(access_payload, refresh_payload):
    """Even with one secret for both, the claim schema keeps them apart."""
    shared = TokenCodec("one-secret", "one-secret")
    access = shared.issue_access(access_payload, timedelta(minutes=15))
    refresh = shared.issue_refresh(refresh_payload, timedelta(days=7))

    with pytest.raises(TokenInvalid):
        shared.verify_refresh(access)
    with pytest.raises(TokenInvalid):
        shared.verify_access(refresh)


def test_token_signed_with_other_secret_rejected(access_payload):
    forged = TokenCodec("attacker-secret", REFRESH_SECRET).issue_access(
        access_payload, timedelta(minutes=15)
    )
    with pytest.raises(TokenInvalid):
        TokenCodec(ACCESS_SECRET, REFRESH_SECRET).verify_access(forged)


def test_tampered_payload_rejected(codec, access_payload):
    token = codec.issue_access(access_payload, timedelta(minutes=15))
    header, payload, signature = token.split(".")
    mid = len(payload) // 2
    flipped = "A" if payload[mid] != "A" else "B"
    tampered = ".".join([header, payload[:mid] + flipped + payload[mid + 1:], signature])
    with pytest.raises(TokenInvalid):
        codec.verify_access(tampered)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer x.y.z"])
def test_garbage_rejected(codec, token):
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)


def test_alg_none_rejected(access_payload):
    now = int(time.time())
    claims = access_payload.model_dump(by_alias=True, mode="json")
    claims.update(iat=now, exp=now + 900)
    token = jwt.encode(claims, None, algorithm="none")
    with pytest.raises(TokenInvalid):
        TokenCodec(ACCESS_SECRET, REFRESH_SECRET).verify_access(token)


# ═══════════════════════════════════════════════════════════
# Claim schema
# ═══════════════════════════════════════════════════════════


def _signed(claims: dict, secret: str = ACCESS_SECRET) -> str:
    now = int(time.time())
    return jwt.encode({"iat": now, "exp": now + 900, **claims}, secret, algorithm="HS256")


def _valid_access_claims() -> dict:
    return {
        "userId": str(uuid.uuid4()),
        "email": "bob@example.com",
        "role": "developer",
        "timezone": "UTC",
        "sessionId": str(uuid.uuid4()),
    }


def test_unknown_claim_rejected(codec):
    token = _signed({**_valid_access_claims(), "isAdmin": True})
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)


@pytest.mark.parametrize("missing", ["userId", "email", "role", "timezone", "sessionId"])
def test_missing_claim_rejected(codec, missing):
    claims = _valid_access_claims()
    del claims[missing]
    with pytest.raises(TokenInvalid):
        codec.verify_access(_signed(claims))


def test_unknown_role_rejected(codec):
    token = _signed({**_valid_access_claims(), "role": "admin"})
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)


def test_non_uuid_user_id_rejected(codec):
    token = _signed({**_valid_access_claims(), "userId": "42"})
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)


def test_missing_exp_rejected(codec):
    token = jwt.encode(
        {**_valid_access_claims(), "iat": int(time.time())}, ACCESS_SECRET, algorithm="HS256"
    )
    with pytest.raises(TokenInvalid):
        codec.verify_access(token)
