"""
Unit tests for password hashing and bearer tokens
"""
import uuid
from datetime import datetime, timedelta, timezone

from backend.services.auth.credentials import TokenIssuer, get_token_issuer, hash_password, verify_password


def test_password_hash_round_trip():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_password_hashes_are_salted():
    assert hash_password("same") != hash_password("same")


def test_verify_password_rejects_garbage_hash():
    assert not verify_password("pw", "not-a-hash")


class TestTokenIssuer:
    """Test bearer token issuance and verification"""

    def setup_method(self):
        self.issuer = TokenIssuer("unit-test-secret")

    def test_issue_and_verify(self):
        user_id = uuid.uuid4()
        assert self.issuer.verify(self.issuer.issue(user_id)) == user_id

    def test_token_valid_for_thirty_days(self):
        user_id = uuid.uuid4()
        almost_expired = self.issuer.issue(user_id, now=datetime.now(timezone.utc) - timedelta(days=29))
        expired = self.issuer.issue(user_id, now=datetime.now(timezone.utc) - timedelta(days=31))
        assert self.issuer.verify(almost_expired) == user_id
        assert self.issuer.verify(expired) is None

    def test_wrong_secret_is_rejected(self):
        token = TokenIssuer("another-secret").issue(uuid.uuid4())
        assert self.issuer.verify(token) is None

    def test_tampered_token_is_rejected(self):
        token = self.issuer.issue(uuid.uuid4())
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        assert self.issuer.verify(tampered) is None

    def test_malformed_tokens_are_rejected(self):
        assert self.issuer.verify("") is None
        assert self.issuer.verify("garbage") is None
        assert self.issuer.verify("a.b.c") is None

    def test_non_uuid_subject_is_rejected(self):
        from jose import jwt

        token = jwt.encode({"sub": "admin"}, key="unit-test-secret", algorithm="HS256")
        assert self.issuer.verify(token) is None


def test_configured_issuer_uses_settings():
    issuer = get_token_issuer()
    assert issuer.secret_key == "test-secret-key"
    assert issuer.ttl == timedelta(days=30)
