from datetime import timedelta

import jwt
import pytest

from todo_service.tokens import (
    TOKEN_LIFETIME,
    MalformedTokenError,
    TokenExpiredError,
    TokenService,
    TokenSignatureError,
)


class TestIssueAndVerify:
    def test_round_trip(self, token_service, clock):
        claim = token_service.verify_token(token_service.issue_token(7))
        assert claim.user_id == 7
        assert claim.expires_at == clock.now + timedelta(hours=24)

    def test_payload_fields(self, token_service, clock, secret):
        payload = jwt.decode(
            token_service.issue_token(3), secret, algorithms=["HS256"], options={"verify_exp": False}
        )
        assert payload == {"user_id": 3, "exp": int((clock.now + TOKEN_LIFETIME).timestamp())}

    def test_valid_until_expiry(self, token_service, clock):
        token = token_service.issue_token(1)
        clock.advance(hours=23, minutes=59)
        assert token_service.verify_token(token).user_id == 1

    @pytest.mark.parametrize("elapsed", [timedelta(hours=24), timedelta(days=3)])
    def test_expired(self, token_service, clock, elapsed):
        token = token_service.issue_token(1)
        clock.now += elapsed
        with pytest.raises(TokenExpiredError):
            token_service.verify_token(token)

    @pytest.mark.parametrize("user_id", [-1, True, "7", 1.0])
    def test_issue_rejects_invalid_user_id(self, token_service, user_id):
        with pytest.raises(ValueError):
            token_service.issue_token(user_id)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestVerifyFailures:
    def test_wrong_secret(self, token_service, clock):
        other = TokenService("another-secret-with-more-than-thirty-two-bytes", clock=clock)
        with pytest.raises(TokenSignatureError):
            token_service.verify_token(other.issue_token(1))

    def test_tampered_payload(self, token_service):
        header, _, signature = token_service.issue_token(1).split(".")
        forged_payload = jwt.encode({"user_id": 0, "exp": 4102444800}, "x" * 40, algorithm="HS256").split(".")[1]
        with pytest.raises(TokenSignatureError):
            token_service.verify_token(".".join([header, forged_payload, signature]))

    def test_signature_checked_before_expiry(self, token_service, clock):
        other = TokenService("another-secret-with-more-than-thirty-two-bytes", clock=clock)
        token = other.issue_token(1)
        clock.advance(days=2)
        with pytest.raises(TokenSignatureError):
            token_service.verify_token(token)

    @pytest.mark.parametrize("token", ["", "abc", "a.b.c", "a.b"])
    def test_unparsable(self, token_service, token):
        with pytest.raises(MalformedTokenError):
            token_service.verify_token(token)

    @pytest.mark.parametrize(
        "payload",
        [
            {"exp": 4102444800},
            {"user_id": 1},
            {"user_id": -5, "exp": 4102444800},
            {"user_id": "1", "exp": 4102444800},
        ],
    )
    def test_bad_claims(self, token_service, payload, secret):
        token = jwt.encode(payload, secret, algorithm="HS256")
        with pytest.raises(MalformedTokenError):
            token_service.verify_token(token)

    @pytest.mark.parametrize("exp", [10**20, -(10**20)])
    def test_expiry_out_of_range(self, token_service, secret, exp):
        token = jwt.encode({"user_id": 1, "exp": exp}, secret, algorithm="HS256")
        with pytest.raises(MalformedTokenError, match="out of range"):
            token_service.verify_token(token)
