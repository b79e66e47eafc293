"""Unit tests for TokenCodec (issue / verify, key rotation, class separation)."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from refreshguard.services._shared.ports import SigningKey, StaticKeyProvider, TokenClass
from refreshguard.services.sessions.codec import TokenCodec, VerificationError

FAR_FUTURE = 2**31


@pytest.fixture()
def access_key(keys) -> SigningKey:
    return keys.signing_key(TokenClass.ACCESS)


@pytest.fixture()
def refresh_key(keys) -> SigningKey:
    return keys.signing_key(TokenClass.REFRESH)


def _forge(secret: str, *, kid: str | None = None, **claims) -> str:
    payload = {"sub": "1", "type": "refresh", "jti": "x", "iat": 0, "exp": FAR_FUTURE}
    payload.update(claims)
    headers = {"kid": kid} if kid else None
    return jwt.encode(payload, secret, algorithm="HS256", headers=headers)


def test_issue_then_verify_returns_claims(codec, clock):
    token = codec.issue("42", TokenClass.REFRESH, timedelta(hours=1))

    result = codec.verify(token, TokenClass.REFRESH)

    assert result.ok
    assert result.claims.principal_id == "42"
    assert result.claims.token_class is TokenClass.REFRESH
    assert result.claims.issued_at == clock.now()
    assert result.claims.expires_at == clock.now() + timedelta(hours=1)


def test_each_issue_is_structurally_new(codec):
    first = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))
    second = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))

    assert first != second
    jti_first = codec.verify(first, TokenClass.REFRESH).claims.jti
    jti_second = codec.verify(second, TokenClass.REFRESH).claims.jti
    assert jti_first != jti_second


def test_header_names_the_class_key(codec, access_key, refresh_key):
    access = codec.issue("1", TokenClass.ACCESS, timedelta(minutes=5))
    refresh = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))

    assert jwt.get_unverified_header(access)["kid"] == access_key.kid
    assert jwt.get_unverified_header(refresh)["kid"] == refresh_key.kid


def test_access_token_uses_flask_jwt_extended_claims(codec, access_key):
    token = codec.issue("7", TokenClass.ACCESS, timedelta(minutes=5), fresh=True)

    payload = jwt.decode(
        token, access_key.secret, algorithms=["HS256"], options={"verify_exp": False}
    )

    assert payload["sub"] == "7"
    assert payload["type"] == "access"
    assert payload["fresh"] is True
    assert {"jti", "iat", "exp"} <= payload.keys()


def test_refresh_token_has_no_fresh_claim(codec, refresh_key):
    token = codec.issue("7", TokenClass.REFRESH, timedelta(minutes=5))
    payload = jwt.decode(
        token, refresh_key.secret, algorithms=["HS256"], options={"verify_exp": False}
    )
    assert "fresh" not in payload


def test_expired_at_exact_expiry(codec, clock):
    token = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))
    clock.advance(timedelta(minutes=5))

    result = codec.verify(token, TokenClass.REFRESH)

    assert not result.ok
    assert result.claims is None
    assert result.error is VerificationError.EXPIRED


def test_valid_just_before_expiry(codec, clock):
    token = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))
    clock.advance(timedelta(minutes=4, seconds=59))
    assert codec.verify(token, TokenClass.REFRESH).ok


def test_signature_only_mode_ignores_expiry(codec, clock):
    token = codec.issue("1", TokenClass.REFRESH, timedelta(minutes=5))
    clock.advance(timedelta(days=30))

    result = codec.verify(token, TokenClass.REFRESH, check_expiry=False)

    assert result.ok
    assert result.claims.principal_id == "1"


def test_access_token_is_never_a_refresh_token(codec):
    access = codec.issue("1", TokenClass.ACCESS, timedelta(minutes=5))

    assert codec.verify(access, TokenClass.REFRESH).error is VerificationError.WRONG_CLASS
    assert codec.verify(access, TokenClass.ACCESS).ok


def test_type_claim_mismatch_is_wrong_class(codec, refresh_key):
    # Correct key, no kid, but typed as an access token
    forged = _forge(refresh_key.secret, type="access")
    assert codec.verify(forged, TokenClass.REFRESH).error is VerificationError.WRONG_CLASS


def test_wrong_secret_is_bad_signature(codec, refresh_key):
    forged = _forge("attacker-secret-0123456789abcdef0123", kid=refresh_key.kid)
    assert codec.verify(forged, TokenClass.REFRESH).error is VerificationError.BAD_SIGNATURE


def test_unknown_kid_is_bad_signature(codec):
    forged = _forge("attacker-secret-0123456789abcdef0123", kid="unknown")
    assert codec.verify(forged, TokenClass.REFRESH).error is VerificationError.BAD_SIGNATURE


def test_unexpected_algorithm_is_bad_signature(codec, refresh_key):
    token = jwt.encode(
        {"sub": "1", "type": "refresh", "jti": "x", "iat": 0, "exp": FAR_FUTURE},
        refresh_key.secret + "-with-enough-length-for-hs512-keys-0123456789",
        algorithm="HS512",
        headers={"kid": refresh_key.kid},
    )
    assert codec.verify(token, TokenClass.REFRESH).error is VerificationError.BAD_SIGNATURE


@pytest.mark.parametrize("raw", ["", "not-a-jwt", "a.b.c", None])
def test_malformed(codec, raw):
    result = codec.verify(raw, TokenClass.REFRESH)
    assert result.error is VerificationError.MALFORMED


def test_missing_required_claim_is_malformed(codec, refresh_key):
    token = jwt.encode(
        {"sub": "1", "type": "refresh", "exp": FAR_FUTURE},
        refresh_key.secret,
        algorithm="HS256",
        headers={"kid": refresh_key.kid},
    )
    assert codec.verify(token, TokenClass.REFRESH).error is VerificationError.MALFORMED


def test_empty_subject_is_malformed(codec, refresh_key):
    forged = _forge(refresh_key.secret, kid=refresh_key.kid, sub="")
    assert codec.verify(forged, TokenClass.REFRESH).error is VerificationError.MALFORMED


def test_retired_key_still_verifies(clock, access_key, refresh_key):
    old = SigningKey(kid="refresh-0", secret="retired-refresh-secret-0123456789ab")
    before = TokenCodec(
        StaticKeyProvider(active={TokenClass.ACCESS: access_key, TokenClass.REFRESH: old}),
        clock,
    )
    token = before.issue("1", TokenClass.REFRESH, timedelta(hours=1))

    after = TokenCodec(
        StaticKeyProvider(
            active={TokenClass.ACCESS: access_key, TokenClass.REFRESH: refresh_key},
            retired={TokenClass.REFRESH: [old]},
        ),
        clock,
    )

    assert after.verify(token, TokenClass.REFRESH).ok
    reissued = after.issue("1", TokenClass.REFRESH, timedelta(hours=1))
    assert jwt.get_unverified_header(reissued)["kid"] == refresh_key.kid


def test_dropped_key_no_longer_verifies(codec, clock, access_key):
    old = SigningKey(kid="refresh-0", secret="retired-refresh-secret-0123456789ab")
    before = TokenCodec(
        StaticKeyProvider(active={TokenClass.ACCESS: access_key, TokenClass.REFRESH: old}),
        clock,
    )
    token = before.issue("1", TokenClass.REFRESH, timedelta(hours=1))

    assert codec.verify(token, TokenClass.REFRESH).error is VerificationError.BAD_SIGNATURE


def test_issuer_is_enforced(keys, clock):
    ours = TokenCodec(keys, clock, issuer="refreshguard")
    theirs = TokenCodec(keys, clock, issuer="someone-else")

    foreign = theirs.issue("1", TokenClass.REFRESH, timedelta(minutes=5))
    own = ours.issue("1", TokenClass.REFRESH, timedelta(minutes=5))

    assert ours.verify(foreign, TokenClass.REFRESH).error is VerificationError.BAD_SIGNATURE
    assert ours.verify(own, TokenClass.REFRESH).ok


def test_leeway_tolerates_small_skew(keys, clock):
    lenient = TokenCodec(keys, clock, leeway=timedelta(seconds=30))
    token = lenient.issue("1", TokenClass.REFRESH, timedelta(minutes=1))

    clock.advance(timedelta(minutes=1, seconds=10))
    assert lenient.verify(token, TokenClass.REFRESH).ok

    clock.advance(timedelta(seconds=30))
    assert lenient.verify(token, TokenClass.REFRESH).error is VerificationError.EXPIRED


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
def test_non_positive_ttl_rejected(codec, ttl):
    with pytest.raises(ValueError):
        codec.issue("1", TokenClass.ACCESS, ttl)
