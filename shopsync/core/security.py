import base64
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken
from jose import JWTError, jwt

from shopsync.core.config import get_settings
from shopsync.core.exceptions import AuthenticationError, DecryptionError

API_KEY_PREFIX = "sk_"

# Query parameters excluded from the OAuth/install request signature
_QUERY_SIGNATURE_PARAMS = ("hmac", "signature")


def get_encryption_key() -> bytes:
    key = get_settings().ENCRYPTION_KEY
    if not key:
        raise ValueError("ENCRYPTION_KEY environment variable is not set")
    return key.encode()


def get_hash_key() -> bytes:
    settings = get_settings()
    # Fall back to the encryption key so a single master secret is enough
    return (settings.API_KEY_HASH_SECRET or settings.ENCRYPTION_KEY).encode()


def encrypt(plaintext: Union[str, bytes], key: bytes) -> str:
    """
    Encrypt with Fernet (AES-CBC + HMAC-SHA256, random IV).
    The returned token embeds the IV, so decryption needs only the key.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode()
    return Fernet(key).encrypt(plaintext).decode()


def decrypt(ciphertext: Union[str, bytes], key: bytes) -> bytes:
    """
    Inverse of encrypt(). Raises DecryptionError on tampered input or a wrong key.
    """
    if isinstance(ciphertext, str):
        ciphertext = ciphertext.encode()
    try:
        return Fernet(key).decrypt(ciphertext)
    except InvalidToken as e:
        raise DecryptionError("Ciphertext could not be decrypted") from e


def encrypt_token(token: str) -> str:
    """
    Encrypt a token with the process-wide ENCRYPTION_KEY.
    """
    return encrypt(token, get_encryption_key())


def decrypt_token(encrypted_token: str) -> str:
    """
    Decrypt a token produced by encrypt_token().
    """
    return decrypt(encrypted_token, get_encryption_key()).decode()


def hash_api_key(api_key: str) -> str:
    """Keyed, one-way digest of a public API key; only the digest is stored."""
    return hmac.new(get_hash_key(), api_key.encode(), hashlib.sha256).hexdigest()


def constant_time_equal(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode(), b.encode())


def generate_api_key() -> str:
    return f"{API_KEY_PREFIX}{secrets.token_hex(32)}"


def generate_api_secret() -> str:
    return secrets.token_hex(48)


def generate_nonce() -> str:
    return secrets.token_hex(16)


def create_session_token(store_id: UUID, shop: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create the JWT handed to a tenant owner after OAuth completes.
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(days=settings.SESSION_TOKEN_EXPIRE_DAYS)

    to_encode = {
        "store_id": str(store_id),
        "shop": shop,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_session_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a session token.
    Raises AuthenticationError if the token is invalid, expired or incomplete.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise AuthenticationError("Invalid session token") from e

    if not payload.get("store_id") or not payload.get("shop"):
        raise AuthenticationError("Invalid session token")
    return payload


def compute_webhook_hmac(raw_body: bytes, secret: Optional[str] = None) -> str:
    secret = secret if secret is not None else get_settings().SHOPIFY_API_SECRET
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_webhook_hmac(raw_body: bytes, provided_hmac: Optional[str]) -> bool:
    """
    Verify X-Shopify-Hmac-SHA256 against the body bytes exactly as received.
    Must run before the body is parsed.
    """
    if not provided_hmac:
        return False
    return constant_time_equal(compute_webhook_hmac(raw_body), provided_hmac)


def compute_query_hmac(params: Mapping[str, str], secret: Optional[str] = None) -> str:
    secret = secret if secret is not None else get_settings().SHOPIFY_API_SECRET
    message = "&".join(
        f"{key}={params[key]}"
        for key in sorted(params)
        if key not in _QUERY_SIGNATURE_PARAMS
    )
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_query_hmac(params: Mapping[str, str]) -> bool:
    """
    Verify the hmac query parameter Shopify appends to install and OAuth
    callback requests. The signed message is the sorted key=value pairs,
    which is not the same construction as the webhook body signature.
    """
    provided = params.get("hmac")
    if not provided:
        return False
    return constant_time_equal(compute_query_hmac(params), provided)
