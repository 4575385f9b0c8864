"""Unit tests for app.core.security: password hashing, access tokens, and refresh grace."""

import unittest
from datetime import UTC, datetime, timedelta

import jwt

from app.core.config import settings
from app.core.security import (
    VERIFICATION_CODE_LENGTH,
    create_access_token,
    decode_access_token,
    decode_refreshable_token,
    generate_verification_code,
    hash_password,
    verify_password,
)


def _token(exp: datetime, sub: str = "7", role: str = "USER") -> str:
    return jwt.encode(
        {"sub": sub, "role": role, "exp": exp, "iat": exp - timedelta(hours=1)},
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


class TestPasswords(unittest.TestCase):
    def test_round_trip(self) -> None:
        hashed = hash_password("s3cret-pass")
        self.assertNotEqual(hashed, "s3cret-pass")
        self.assertTrue(verify_password("s3cret-pass", hashed))
        self.assertFalse(verify_password("wrong-pass", hashed))

    def test_malformed_hash_is_rejected(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-bcrypt-hash"))


class TestAccessTokens(unittest.TestCase):
    def test_claims(self) -> None:
        payload = decode_access_token(create_access_token(sub=42, role="ADMIN"))
        self.assertEqual(payload["sub"], "42")
        self.assertEqual(payload["role"], "ADMIN")
        self.assertIn("exp", payload)
        self.assertIn("iat", payload)

    def test_expired_token_rejected(self) -> None:
        token = _token(datetime.now(UTC) - timedelta(minutes=1))
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_signature_rejected(self) -> None:
        token = jwt.encode({"sub": "1", "exp": datetime.now(UTC) + timedelta(hours=1)}, "other", algorithm="HS256")
        with self.assertRaises(jwt.PyJWTError):
            decode_access_token(token)


class TestRefreshableTokens(unittest.TestCase):
    def test_recently_expired_token_accepted(self) -> None:
        payload = decode_refreshable_token(_token(datetime.now(UTC) - timedelta(minutes=5)))
        self.assertEqual(payload["sub"], "7")

    def test_token_past_grace_rejected(self) -> None:
        expired = datetime.now(UTC) - timedelta(minutes=settings.JWT_REFRESH_GRACE_MINUTES + 5)
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_refreshable_token(_token(expired))

    def test_tampered_token_rejected(self) -> None:
        token = _token(datetime.now(UTC)) + "x"
        with self.assertRaises(jwt.PyJWTError):
            decode_refreshable_token(token)


class TestVerificationCode(unittest.TestCase):
    def test_numeric_fixed_length(self) -> None:
        code = generate_verification_code()
        self.assertEqual(len(code), VERIFICATION_CODE_LENGTH)
        self.assertTrue(code.isdigit())


if __name__ == "__main__":
    unittest.main()
