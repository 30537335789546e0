from typing import List
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shopsync.db.models.webhook import Webhook


async def save_webhook(db: AsyncSession, store_id: UUID, webhook_id: int, topic: str, address: str) -> Webhook:
    """Insert or refresh the registration for (store, topic)."""
    stmt = select(Webhook).where(Webhook.store_id == store_id, Webhook.topic == topic)
    result = await db.execute(stmt)
    db_webhook = result.scalars().first()

    if db_webhook:
        db_webhook.webhook_id = webhook_id
        db_webhook.address = address
    else:
        db_webhook = Webhook(store_id=store_id, webhook_id=webhook_id, topic=topic, address=address)
        db.add(db_webhook)

    await db.commit()
    await db.refresh(db_webhook)
    return db_webhook


async def get_webhooks_by_store(db: AsyncSession, store_id: UUID) -> List[Webhook]:
    stmt = select(Webhook).where(Webhook.store_id == store_id).order_by(Webhook.topic)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def delete_all_webhooks(db: AsyncSession, store_id: UUID) -> int:
    result = await db.execute(delete(Webhook).where(Webhook.store_id == store_id))
    await db.commit()
    return result.rowcount
