from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.session import get_db_session
from loom_scheduler.repositories import resource as resource_repo
from loom_scheduler.repositories import rules as rules_repo
from loom_scheduler.schemas.rules import (
    EnrolmentCreate,
    EnrolmentRead,
    ProgramRuleCreate,
    ProgramRuleRead,
    RateLineItemCreate,
    RateLineItemRead,
    RuleExceptionCreate,
    RuleExceptionRead,
    StaffingRatioTableCreate,
    StaffingRatioTableRead,
)

router = APIRouter()

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


async def _require_rule(session: AsyncSession, rule_id: int):
    rule = await rules_repo.get_rule(session, rule_id)
    if not rule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rule not found")
    return rule


@router.get("/ratio-tables", response_model=list[StaffingRatioTableRead])
async def list_ratio_tables(session: SessionDep) -> list[StaffingRatioTableRead]:
    tables = await rules_repo.list_ratio_tables(session)
    return [StaffingRatioTableRead.model_validate(table) for table in tables]


@router.post("/ratio-tables", response_model=StaffingRatioTableRead, status_code=status.HTTP_201_CREATED)
async def create_ratio_table(payload: StaffingRatioTableCreate, session: SessionDep) -> StaffingRatioTableRead:
    table = await rules_repo.create_ratio_table(session, payload)
    await session.commit()
    return StaffingRatioTableRead.model_validate(table)


@router.get("/", response_model=list[ProgramRuleRead])
async def list_rules(session: SessionDep) -> list[ProgramRuleRead]:
    rules = await rules_repo.list_rules(session)
    return [ProgramRuleRead.model_validate(rule) for rule in rules]


@router.post("/", response_model=ProgramRuleRead, status_code=status.HTTP_201_CREATED)
async def create_rule(payload: ProgramRuleCreate, session: SessionDep) -> ProgramRuleRead:
    if payload.venue_id is not None and not await resource_repo.get_venue(session, payload.venue_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Venue not found")
    rule = await rules_repo.create_rule(session, payload)
    await session.commit()
    return ProgramRuleRead.model_validate(rule)


@router.get("/{rule_id}", response_model=ProgramRuleRead)
async def get_rule(rule_id: int, session: SessionDep) -> ProgramRuleRead:
    return ProgramRuleRead.model_validate(await _require_rule(session, rule_id))


@router.post(
    "/{rule_id}/exceptions", response_model=RuleExceptionRead, status_code=status.HTTP_201_CREATED
)
async def create_exception(
    rule_id: int, payload: RuleExceptionCreate, session: SessionDep
) -> RuleExceptionRead:
    await _require_rule(session, rule_id)
    exception = await rules_repo.create_exception(session, rule_id, payload)
    await session.commit()
    return RuleExceptionRead.model_validate(exception)


@router.post("/{rule_id}/enrolments", response_model=EnrolmentRead, status_code=status.HTTP_201_CREATED)
async def create_enrolment(rule_id: int, payload: EnrolmentCreate, session: SessionDep) -> EnrolmentRead:
    await _require_rule(session, rule_id)
    if not await resource_repo.get_participant(session, payload.participant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    enrolment = await rules_repo.create_enrolment(session, rule_id, payload)
    await session.commit()
    return EnrolmentRead.model_validate(enrolment)


@router.get("/{rule_id}/rates", response_model=list[RateLineItemRead])
async def list_rates(rule_id: int, session: SessionDep) -> list[RateLineItemRead]:
    await _require_rule(session, rule_id)
    rates = await rules_repo.list_rates(session, rule_id)
    return [RateLineItemRead.model_validate(rate) for rate in rates]


@router.post("/{rule_id}/rates", response_model=RateLineItemRead, status_code=status.HTTP_201_CREATED)
async def create_rate(rule_id: int, payload: RateLineItemCreate, session: SessionDep) -> RateLineItemRead:
    await _require_rule(session, rule_id)
    rate = await rules_repo.create_rate(session, rule_id, payload)
    await session.commit()
    return RateLineItemRead.model_validate(rate)
