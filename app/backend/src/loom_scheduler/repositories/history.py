from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.models.history import (
    HistoryParticipant,
    HistoryShift,
    HistoryStaff,
    HistoryTag,
    PaymentDiamond,
)


async def list_history_shifts(
    session: AsyncSession, *, start: date | None = None, end: date | None = None
) -> list[HistoryShift]:
    query = select(HistoryShift)
    if start is not None:
        query = query.where(HistoryShift.instance_date >= start)
    if end is not None:
        query = query.where(HistoryShift.instance_date <= end)
    result = await session.execute(query.order_by(HistoryShift.instance_date, HistoryShift.id))
    return list(result.scalars().all())


async def get_history_shift(session: AsyncSession, shift_id: int) -> HistoryShift | None:
    return await session.get(HistoryShift, shift_id)


async def list_history_participants(session: AsyncSession, shift_id: int) -> list[HistoryParticipant]:
    result = await session.execute(
        select(HistoryParticipant)
        .where(HistoryParticipant.history_shift_id == shift_id)
        .order_by(HistoryParticipant.id)
    )
    return list(result.scalars().all())


async def list_history_staff(session: AsyncSession, shift_id: int) -> list[HistoryStaff]:
    result = await session.execute(
        select(HistoryStaff).where(HistoryStaff.history_shift_id == shift_id).order_by(HistoryStaff.id)
    )
    return list(result.scalars().all())


async def list_history_tags(session: AsyncSession, shift_id: int) -> list[HistoryTag]:
    result = await session.execute(
        select(HistoryTag).where(HistoryTag.history_shift_id == shift_id).order_by(HistoryTag.id)
    )
    return list(result.scalars().all())


async def list_payment_diamonds(
    session: AsyncSession, *, status: str | None = None, history_shift_id: int | None = None
) -> list[PaymentDiamond]:
    query = select(PaymentDiamond)
    if status is not None:
        query = query.where(PaymentDiamond.status == status)
    if history_shift_id is not None:
        query = query.where(PaymentDiamond.history_shift_id == history_shift_id)
    result = await session.execute(query.order_by(PaymentDiamond.id))
    return list(result.scalars().all())


async def get_payment_diamond(session: AsyncSession, diamond_id: int) -> PaymentDiamond | None:
    return await session.get(PaymentDiamond, diamond_id)
