import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shopsync.core.scopes import effective_scopes, format_scopes, is_valid_scope, parse_scopes, uncovered_scopes
from shopsync.core.security import (
    constant_time_equal,
    generate_api_key,
    generate_api_secret,
    hash_api_key,
)
from shopsync.db.models.api_key import ApiKey
from shopsync.db.models.store import Store
from shopsync.schemas.api_key import ApiKeySummary, IssuedApiKey

logger = logging.getLogger(__name__)

KEY_PREFIX_LENGTH = 11  # "sk_" plus eight characters


@dataclass
class ResolvedApiKey:
    """What the authorization gate learns from a valid key/secret pair."""
    api_key_id: UUID
    store_id: UUID
    shop_domain: str
    access_token: str
    scopes: List[str] = field(default_factory=list)


def to_summary(api_key: ApiKey) -> ApiKeySummary:
    return ApiKeySummary(
        id=api_key.id,
        name=api_key.name,
        masked_key=api_key.masked_key,
        scopes=api_key.scope_list,
        is_active=api_key.is_active,
        created_at=api_key.created_at,
        last_used_at=api_key.last_used_at,
    )


def validate_key_request(store: Store, name: str, scopes: Sequence[str]) -> List[str]:
    """
    Checks name and scope subset for a new credential.
    Raises ValueError with a message fit for the caller.
    """
    if not name or not name.strip():
        raise ValueError("Name is required")

    requested = parse_scopes(list(scopes))
    if not requested:
        raise ValueError("At least one scope is required")

    malformed = [scope for scope in requested if not is_valid_scope(scope)]
    if malformed:
        raise ValueError(f"Invalid scope names: {', '.join(malformed)}")

    missing = uncovered_scopes(requested, store.scope_list)
    if missing:
        raise ValueError(f"Scopes not granted to this store: {', '.join(missing)}")
    return requested


async def create_api_key(db: AsyncSession, store: Store, name: str, scopes: Sequence[str]) -> IssuedApiKey:
    """
    Issues a new key/secret pair bound to ``scopes``.

    The key and secret are returned in clear only here. Only a hash of the
    key and the encrypted secret are persisted.
    """
    requested = validate_key_request(store, name, scopes)

    public_key = generate_api_key()
    secret = generate_api_secret()

    db_key = ApiKey(
        store_id=store.id,
        key_hash=hash_api_key(public_key),
        key_prefix=public_key[:KEY_PREFIX_LENGTH],
        api_secret=secret,  # Setter handles encryption
        name=name.strip(),
        scopes=format_scopes(requested),
        is_active=True,
    )
    db.add(db_key)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(db_key)

    logger.info("Issued API key %s (%s) for store %s", db_key.id, db_key.name, store.shop_domain)
    return IssuedApiKey(**to_summary(db_key).model_dump(), api_key=public_key, api_secret=secret)


async def list_api_keys(db: AsyncSession, store_id: UUID) -> List[ApiKeySummary]:
    stmt = (
        select(ApiKey)
        .where(ApiKey.store_id == store_id)
        .order_by(ApiKey.created_at.desc())
    )
    result = await db.execute(stmt)
    return [to_summary(api_key) for api_key in result.scalars().all()]


async def delete_api_key(db: AsyncSession, api_key_id: UUID, store_id: UUID) -> bool:
    """
    Hard delete, scoped to the owning store.
    Returns False when nothing matched so retries are safe.
    """
    stmt = delete(ApiKey).where(ApiKey.id == api_key_id, ApiKey.store_id == store_id)
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount > 0


async def deactivate_api_key(db: AsyncSession, api_key_id: UUID, store_id: UUID) -> bool:
    stmt = (
        update(ApiKey)
        .where(ApiKey.id == api_key_id, ApiKey.store_id == store_id)
        .values(is_active=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount > 0


async def rotate_api_key(db: AsyncSession, api_key_id: UUID, store_id: UUID) -> Optional[IssuedApiKey]:
    """Replaces key and secret of an existing credential, keeping name and scopes."""
    stmt = select(ApiKey).where(ApiKey.id == api_key_id, ApiKey.store_id == store_id)
    result = await db.execute(stmt)
    db_key = result.scalars().first()
    if db_key is None:
        return None

    public_key = generate_api_key()
    secret = generate_api_secret()
    db_key.key_hash = hash_api_key(public_key)
    db_key.key_prefix = public_key[:KEY_PREFIX_LENGTH]
    db_key.api_secret = secret
    await db.commit()
    await db.refresh(db_key)

    logger.info("Rotated API key %s", db_key.id)
    return IssuedApiKey(**to_summary(db_key).model_dump(), api_key=public_key, api_secret=secret)


async def resolve_api_key(db: AsyncSession, public_key: str, secret: str) -> Optional[ResolvedApiKey]:
    """
    Looks up an active key of an active store by the hash of ``public_key``
    and checks ``secret`` in constant time.

    Returns None when the pair does not authenticate. Decryption failures
    propagate as DecryptionError.
    """
    stmt = (
        select(ApiKey, Store)
        .join(Store, ApiKey.store_id == Store.id)
        .where(
            ApiKey.key_hash == hash_api_key(public_key),
            ApiKey.is_active.is_(True),
            Store.is_active.is_(True),
        )
    )
    result = await db.execute(stmt)
    row = result.first()
    if row is None:
        return None

    db_key, store = row
    if not constant_time_equal(db_key.api_secret, secret):
        return None

    return ResolvedApiKey(
        api_key_id=db_key.id,
        store_id=store.id,
        shop_domain=store.shop_domain,
        access_token=store.access_token,
        scopes=effective_scopes(db_key.scope_list, store.scope_list),
    )


async def touch_last_used(db: AsyncSession, api_key_id: UUID) -> None:
    """Best effort; a failure here must not fail the request being served."""
    try:
        stmt = (
            update(ApiKey)
            .where(ApiKey.id == api_key_id)
            .values(last_used_at=datetime.now(timezone.utc))
        )
        await db.execute(stmt)
        await db.commit()
    except Exception as e:
        logger.warning("Could not update last_used_at for API key %s: %s", api_key_id, e)
        await db.rollback()
