import base64
import hashlib
import hmac
from datetime import timedelta
from uuid import uuid4

import pytest
from cryptography.fernet import Fernet
from jose import jwt

from shopsync.core.config import get_settings
from shopsync.core.exceptions import AuthenticationError, DecryptionError
from shopsync.core.security import (
    compute_query_hmac,
    constant_time_equal,
    create_session_token,
    decrypt,
    decrypt_token,
    encrypt,
    encrypt_token,
    generate_api_key,
    generate_api_secret,
    generate_nonce,
    get_encryption_key,
    hash_api_key,
    verify_query_hmac,
    verify_session_token,
    verify_webhook_hmac,
)

TEST_TOKEN = "shpat_12345abcde67890fghijk"
TEST_SHOPIFY_SECRET = "test-shopify-secret"


def _tamper(token: str, index: int = 20) -> str:
    replacement = "A" if token[index] != "A" else "B"
    return token[:index] + replacement + token[index + 1:]


def test_token_encryption():
    """Test that token encryption and decryption work correctly"""
    encrypted = encrypt_token(TEST_TOKEN)
    assert encrypted != TEST_TOKEN
    assert decrypt_token(encrypted) == TEST_TOKEN


@pytest.mark.parametrize("plaintext", [b"", b"a:b:c", "café ✓".encode(), b"\x00\xff" * 40])
def test_encrypt_round_trips_arbitrary_bytes(plaintext):
    key = get_encryption_key()
    assert decrypt(encrypt(plaintext, key), key) == plaintext


def test_empty_token_still_produces_ciphertext():
    encrypted = encrypt_token("")
    assert encrypted
    assert decrypt_token(encrypted) == ""


def test_same_plaintext_encrypts_differently_each_time():
    assert encrypt_token(TEST_TOKEN) != encrypt_token(TEST_TOKEN)


def test_tampered_ciphertext_is_rejected():
    with pytest.raises(DecryptionError):
        decrypt_token(_tamper(encrypt_token(TEST_TOKEN)))


def test_wrong_key_is_rejected():
    ciphertext = encrypt(TEST_TOKEN, Fernet.generate_key())
    with pytest.raises(DecryptionError):
        decrypt_token(ciphertext)


def test_garbage_ciphertext_is_rejected():
    with pytest.raises(DecryptionError):
        decrypt_token("not-a-token")


def test_missing_encryption_key(monkeypatch):
    monkeypatch.setattr(get_settings(), "ENCRYPTION_KEY", "")
    with pytest.raises(ValueError):
        encrypt_token(TEST_TOKEN)


def test_api_key_hash_is_keyed_and_stable():
    api_key = generate_api_key()
    digest = hash_api_key(api_key)
    assert digest == hash_api_key(api_key)
    assert len(digest) == 64
    assert digest != hashlib.sha256(api_key.encode()).hexdigest()
    assert digest != hash_api_key(generate_api_key())


def test_generated_credentials_shape():
    api_key = generate_api_key()
    assert api_key.startswith("sk_")
    assert len(api_key) == 3 + 64
    assert len(generate_api_secret()) == 96
    assert len(generate_nonce()) == 32
    assert generate_nonce() != generate_nonce()


def test_constant_time_equal():
    assert constant_time_equal("abc", "abc")
    assert not constant_time_equal("abc", "abd")
    assert not constant_time_equal(None, "abc")
    assert not constant_time_equal("abc", None)


def test_session_token_round_trip():
    store_id = uuid4()
    payload = verify_session_token(create_session_token(store_id, "shop.myshopify.com"))
    assert payload["store_id"] == str(store_id)
    assert payload["shop"] == "shop.myshopify.com"


def test_expired_session_token_is_rejected():
    token = create_session_token(uuid4(), "shop.myshopify.com", expires_delta=timedelta(seconds=-10))
    with pytest.raises(AuthenticationError):
        verify_session_token(token)


def test_session_token_signed_with_another_key_is_rejected():
    token = jwt.encode({"store_id": str(uuid4()), "shop": "shop.myshopify.com"}, "not-our-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        verify_session_token(token)


def test_session_token_without_claims_is_rejected():
    settings = get_settings()
    token = jwt.encode({"shop": "shop.myshopify.com"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    with pytest.raises(AuthenticationError):
        verify_session_token(token)


def _shopify_webhook_hmac(body: bytes) -> str:
    digest = hmac.new(TEST_SHOPIFY_SECRET.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def test_webhook_hmac_matches_raw_body():
    body = b'{"id": 820982911946154508, "email": "jon@example.com"}'
    assert verify_webhook_hmac(body, _shopify_webhook_hmac(body))


def test_webhook_hmac_rejects_altered_body():
    body = b'{"id": 820982911946154508, "email": "jon@example.com"}'
    signature = _shopify_webhook_hmac(body)
    altered = body.replace(b"jon", b"jan")
    assert not verify_webhook_hmac(altered, signature)
    assert not verify_webhook_hmac(body, None)
    assert not verify_webhook_hmac(body, "")


def test_webhook_hmac_is_over_bytes_not_reserialized_json():
    # Same JSON document, different bytes
    body = b'{"a":1,"b":2}'
    assert not verify_webhook_hmac(b'{"a": 1, "b": 2}', _shopify_webhook_hmac(body))


def test_query_hmac_over_sorted_pairs():
    params = {"shop": "shop.myshopify.com", "code": "abc123", "timestamp": "1700000000", "state": "n0nce"}
    message = "code=abc123&shop=shop.myshopify.com&state=n0nce&timestamp=1700000000"
    expected = hmac.new(TEST_SHOPIFY_SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()
    assert compute_query_hmac(params) == expected

    signed = dict(params, hmac=expected)
    assert verify_query_hmac(signed)


def test_query_hmac_rejects_changed_or_missing_signature():
    params = {"shop": "shop.myshopify.com", "code": "abc123", "timestamp": "1700000000"}
    signed = dict(params, hmac=compute_query_hmac(params))
    assert not verify_query_hmac(dict(signed, shop="other.myshopify.com"))
    assert not verify_query_hmac(params)
