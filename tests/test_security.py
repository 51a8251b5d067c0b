import jwt
import pytest

from utils.security import PasswordVerifier, decode_signed, encode_token, generate_jti


class TestPasswordVerifier:
    def test_hash_is_salted_and_not_plaintext(self, passwords):
        first = passwords.hash("Secret123")
        second = passwords.hash("Secret123")
        assert first != "Secret123"
        assert first.startswith("$argon2")
        assert first != second

    def test_verify_accepts_matching_password(self, passwords):
        digest = passwords.hash("Secret123")
        assert passwords.verify("Secret123", digest) is True

    def test_verify_rejects_wrong_password(self, passwords):
        digest = passwords.hash("Secret123")
        assert passwords.verify("secret123", digest) is False

    @pytest.mark.parametrize("digest", ["", "not-a-hash", "$argon2id$v=19$garbage"])
    def test_malformed_digest_fails_closed(self, passwords, digest):
        assert passwords.verify("Secret123", digest) is False

    def test_empty_password_never_verifies(self, passwords):
        digest = passwords.hash("Secret123")
        assert passwords.verify("", digest) is False

    def test_from_mapping_reads_cost_parameters(self):
        verifier = PasswordVerifier.from_mapping(
            {"ARGON2_TIME_COST": 1, "ARGON2_MEMORY_COST": 1024, "ARGON2_PARALLELISM": 1}
        )
        assert "m=1024,t=1,p=1" in verifier.hash("Secret123")


class TestJwtHelpers:
    SECRET = "unit-test-signing-secret-0123456789abcdef"

    def _claims(self, **overrides):
        claims = {"sub": "acc-1", "iat": 1, "exp": 2, "type": "access", "jti": generate_jti()}
        claims.update(overrides)
        return claims

    def test_decode_ignores_expiry(self):
        token = encode_token(self._claims(), self.SECRET, "HS256")
        assert decode_signed(token, self.SECRET, "HS256")["sub"] == "acc-1"

    def test_decode_rejects_foreign_signature(self):
        token = encode_token(self._claims(), "another-signing-secret-0123456789abcdef", "HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_signed(token, self.SECRET, "HS256")

    def test_decode_requires_type_and_jti(self):
        claims = self._claims()
        del claims["type"]
        token = encode_token(claims, self.SECRET, "HS256")
        with pytest.raises(jwt.MissingRequiredClaimError):
            decode_signed(token, self.SECRET, "HS256")

    def test_jti_is_unique(self):
        assert len({generate_jti() for _ in range(50)}) == 50
