"""Password hashing and token helper tests."""

import jwt

from authgate.config import settings
from authgate.services.security import (
    JWT_ALGORITHM,
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)


def test_hash_and_verify():
    hashed = hash_password("secret1")
    assert hashed.startswith("$2")
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_malformed_hash_never_verifies():
    assert verify_password("secret1", "not-a-bcrypt-hash") is False


def test_access_token_claims():
    token = create_access_token("user-1", "Alice")
    claims = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])

    assert claims["userId"] == "user-1"
    assert claims["name"] == "Alice"
    assert claims["exp"] - claims["iat"] == settings.jwt_lifetime_days * 24 * 3600


def test_reset_tokens_are_unique_and_digest_is_stable():
    first, second = generate_reset_token(), generate_reset_token()

    assert first != second
    assert hash_reset_token(first) == hash_reset_token(first)
    assert len(hash_reset_token(first)) == 64
