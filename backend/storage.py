# backend/storage.py
"""Metadata store for users and receipts.

Identifiers are assigned by the database. Receipt ownership is checked here so
routes never hand another user's record back by accident.
"""
from datetime import datetime
from typing import Optional, Sequence
from sqlmodel import select, col
from sqlalchemy.ext.asyncio import AsyncSession

from models import User, Receipt
from errors import NotFound, AccessDenied

DEFAULT_RECENT_LIMIT = 20


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id)

async def get_user_by_google_id(session: AsyncSession, google_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.googleId == google_id))
    return result.scalar_one_or_none()

async def create_receipt(session: AsyncSession, receipt: Receipt) -> Receipt:
    # No dedup on googleDriveId: every upload is its own record.
    session.add(receipt)
    await session.commit()
    await session.refresh(receipt)
    return receipt

def _newest_first(statement):
    return statement.order_by(col(Receipt.uploadDate).desc(), col(Receipt.id).desc())

async def get_receipts_by_user_id(session: AsyncSession, user_id: int, limit: Optional[int] = None) -> Sequence[Receipt]:
    statement = _newest_first(select(Receipt).where(Receipt.userId == user_id))
    if limit is not None:
        statement = statement.limit(limit)
    result = await session.execute(statement)
    return result.scalars().all()

async def get_recent_receipts(session: AsyncSession, user_id: int, limit: int = DEFAULT_RECENT_LIMIT) -> Sequence[Receipt]:
    return await get_receipts_by_user_id(session, user_id, limit=limit)

async def get_receipts_by_date_range(
    session: AsyncSession, user_id: int, start: datetime, end: datetime
) -> Sequence[Receipt]:
    """Receipts uploaded between ``start`` and ``end`` inclusive, newest first."""
    statement = _newest_first(
        select(Receipt).where(
            Receipt.userId == user_id,
            col(Receipt.uploadDate) >= start,
            col(Receipt.uploadDate) <= end,
        )
    )
    result = await session.execute(statement)
    return result.scalars().all()

async def get_owned_receipt(session: AsyncSession, receipt_id: int, user_id: int) -> Receipt:
    receipt = await session.get(Receipt, receipt_id)
    if receipt is None:
        raise NotFound("Receipt not found")
    if receipt.userId != user_id:
        raise AccessDenied()
    return receipt

async def delete_receipt(session: AsyncSession, receipt: Receipt) -> None:
    await session.delete(receipt)
    await session.commit()
