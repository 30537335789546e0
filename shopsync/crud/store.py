import logging
from typing import Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shopsync.core.scopes import format_scopes
from shopsync.db.models.store import Store

logger = logging.getLogger(__name__)


async def upsert_store(
    db: AsyncSession,
    shop_domain: str,
    access_token: str,
    scopes: Union[str, Iterable[str]],
) -> Store:
    """
    Creates a store or refreshes token and scopes for an existing one.
    Re-installing always reactivates the store.
    """
    if isinstance(scopes, str):
        scopes = scopes.split(",")

    stmt = select(Store).where(Store.shop_domain == shop_domain)
    result = await db.execute(stmt)
    db_store = result.scalars().first()

    if db_store:
        db_store.access_token = access_token  # Setter handles encryption
        db_store.scopes = format_scopes(scopes)
        db_store.is_active = True
    else:
        db_store = Store(
            shop_domain=shop_domain,
            access_token=access_token,
            scopes=format_scopes(scopes),
            is_active=True,
        )
        db.add(db_store)

    await db.commit()
    await db.refresh(db_store)
    logger.info("Stored installation for %s", shop_domain)
    return db_store


async def get_store_by_domain(db: AsyncSession, shop_domain: str) -> Optional[Store]:
    stmt = select(Store).where(Store.shop_domain == shop_domain, Store.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_store_by_id(db: AsyncSession, store_id: Union[UUID, str]) -> Optional[Store]:
    if isinstance(store_id, str):
        try:
            store_id = UUID(store_id)
        except ValueError:
            return None
    stmt = select(Store).where(Store.id == store_id, Store.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_active_stores(db: AsyncSession) -> List[Store]:
    stmt = select(Store).where(Store.is_active.is_(True)).order_by(Store.installed_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def deactivate_store(db: AsyncSession, shop_domain: str) -> bool:
    """
    Marks the store inactive. Credentials and activity logs are kept for
    auditing but stop authorizing immediately.
    """
    stmt = select(Store).where(Store.shop_domain == shop_domain)
    result = await db.execute(stmt)
    db_store = result.scalars().first()
    if db_store is None:
        return False

    db_store.is_active = False
    await db.commit()
    logger.info("Deactivated store %s", shop_domain)
    return True


async def delete_store(db: AsyncSession, shop_domain: str) -> bool:
    """Hard delete; credentials, webhooks and logs go with it."""
    stmt = select(Store).where(Store.shop_domain == shop_domain)
    result = await db.execute(stmt)
    db_store = result.scalars().first()
    if db_store is None:
        return False

    await db.delete(db_store)
    await db.commit()
    logger.info("Deleted store %s", shop_domain)
    return True
