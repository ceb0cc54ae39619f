import pytest

from billpilot.core.exceptions import Expired, InvalidSignature
from billpilot.services.token_issuer import ACCESS, REFRESH, TokenIssuer

SECRET = "issuer-secret-that-is-long-enough-for-hs256"


def test_access_token_carries_user_and_roles():
    issuer = TokenIssuer(SECRET)
    payload = issuer.verify(issuer.issue_access(7, ["User", "Admin"]), ACCESS)

    assert payload["id"] == 7
    assert payload["roles"] == ["User", "Admin"]
    assert payload["type"] == ACCESS
    assert payload["exp"] - payload["iat"] == 10 * 60


def test_refresh_token_lifetime_and_type():
    issuer = TokenIssuer(SECRET, refresh_exp_minutes=60)
    token = issuer.issue_refresh(3)
    payload = issuer.verify(token, REFRESH)

    assert payload["id"] == 3
    assert payload["exp"] - payload["iat"] == 60 * 60
    with pytest.raises(InvalidSignature):
        issuer.verify(token, ACCESS)


def test_tokens_issued_together_are_distinct():
    issuer = TokenIssuer(SECRET)
    assert issuer.issue_refresh(1) != issuer.issue_refresh(1)


def test_expired_token():
    issuer = TokenIssuer(SECRET, refresh_exp_minutes=-1)
    token = issuer.issue_refresh(5)

    with pytest.raises(Expired):
        issuer.verify(token, REFRESH)
    assert issuer.verify(token, REFRESH, allow_expired=True)["id"] == 5


def test_foreign_or_malformed_token():
    token = TokenIssuer(SECRET).issue_access(1, ["User"])

    with pytest.raises(InvalidSignature):
        TokenIssuer("another-secret-that-is-long-enough-too").verify(token)
    with pytest.raises(InvalidSignature):
        TokenIssuer(SECRET).verify("not-a-token")


def test_secret_is_required():
    with pytest.raises(RuntimeError):
        TokenIssuer("")
