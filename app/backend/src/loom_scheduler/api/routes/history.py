from datetime import date
from typing import Annotated, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.session import get_db_session
from loom_scheduler.repositories import history as history_repo
from loom_scheduler.schemas.history import (
    ArchiveRequest,
    HistoryParticipantRead,
    HistoryShiftDetail,
    HistoryShiftRead,
    HistoryStaffRead,
    HistoryTagRead,
    PaymentDiamondRead,
)
from loom_scheduler.schemas.loom import ArchiveStatsRead
from loom_scheduler.services import archival

router = APIRouter()

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("/archive", response_model=ArchiveStatsRead)
async def archive_completed(
    session: SessionDep, payload: Annotated[ArchiveRequest | None, Body()] = None
) -> ArchiveStatsRead:
    """Weave every instance dated before the cutoff (default today) into history."""
    cutoff = payload.cutoff if payload and payload.cutoff else date.today()
    result = await archival.weave_to_history(session, cutoff)
    await session.commit()
    return ArchiveStatsRead(cutoff=result.cutoff, history_shift_ids=result.history_shift_ids, **vars(result.stats))


@router.get("/shifts", response_model=list[HistoryShiftRead])
async def list_history_shifts(
    session: SessionDep,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
) -> list[HistoryShiftRead]:
    shifts = await history_repo.list_history_shifts(session, start=start, end=end)
    return [HistoryShiftRead.model_validate(shift) for shift in shifts]


@router.get("/shifts/{shift_id}", response_model=HistoryShiftDetail)
async def get_history_shift(shift_id: int, session: SessionDep) -> HistoryShiftDetail:
    shift = await history_repo.get_history_shift(session, shift_id)
    if not shift:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History shift not found")
    detail = HistoryShiftDetail.model_validate(shift)
    detail.participants = [
        HistoryParticipantRead.model_validate(row)
        for row in await history_repo.list_history_participants(session, shift_id)
    ]
    detail.staff = [
        HistoryStaffRead.model_validate(row) for row in await history_repo.list_history_staff(session, shift_id)
    ]
    detail.tags = [HistoryTagRead.model_validate(row) for row in await history_repo.list_history_tags(session, shift_id)]
    return detail


@router.get("/payment-diamonds", response_model=list[PaymentDiamondRead])
async def list_payment_diamonds(
    session: SessionDep,
    status_filter: Literal["pending", "billed"] | None = Query(default=None, alias="status"),
) -> list[PaymentDiamondRead]:
    diamonds = await history_repo.list_payment_diamonds(session, status=status_filter)
    return [PaymentDiamondRead.model_validate(diamond) for diamond in diamonds]


@router.post("/payment-diamonds/{diamond_id}/bill", response_model=PaymentDiamondRead)
async def bill_payment_diamond(diamond_id: int, session: SessionDep) -> PaymentDiamondRead:
    diamond = await archival.mark_diamond_billed(session, diamond_id)
    await session.commit()
    return PaymentDiamondRead.model_validate(diamond)
