from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.models.rules import (
    ParticipantEnrolment,
    ProgramRule,
    RateLineItem,
    RuleException,
    StaffingRatioBracket,
    StaffingRatioTable,
)
from loom_scheduler.schemas.rules import (
    EnrolmentCreate,
    ProgramRuleCreate,
    RateLineItemCreate,
    RuleExceptionCreate,
    StaffingRatioTableCreate,
)
from loom_scheduler.services.rules import RatioBracket, RatioTable


async def list_rules(session: AsyncSession, *, active_only: bool = False) -> list[ProgramRule]:
    query = select(ProgramRule).order_by(ProgramRule.id)
    if active_only:
        query = query.where(ProgramRule.active.is_(True))
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_rule(session: AsyncSession, rule_id: int) -> ProgramRule | None:
    return await session.get(ProgramRule, rule_id)


async def create_rule(session: AsyncSession, payload: ProgramRuleCreate) -> ProgramRule:
    rule = ProgramRule(**payload.to_row())
    session.add(rule)
    await session.flush()
    await session.refresh(rule)
    return rule


async def list_exceptions(
    session: AsyncSession, *, start: date, end: date, rule_id: int | None = None
) -> list[RuleException]:
    query = select(RuleException).where(
        RuleException.exception_date >= start, RuleException.exception_date <= end
    )
    if rule_id is not None:
        query = query.where(RuleException.rule_id == rule_id)
    result = await session.execute(query.order_by(RuleException.exception_date, RuleException.id))
    return list(result.scalars().all())


async def create_exception(
    session: AsyncSession, rule_id: int, payload: RuleExceptionCreate
) -> RuleException:
    exception = RuleException(rule_id=rule_id, **payload.model_dump())
    session.add(exception)
    await session.flush()
    await session.refresh(exception)
    return exception


async def create_ratio_table(session: AsyncSession, payload: StaffingRatioTableCreate) -> StaffingRatioTable:
    table = StaffingRatioTable(
        name=payload.name,
        brackets=[StaffingRatioBracket(**bracket.model_dump()) for bracket in payload.brackets],
    )
    session.add(table)
    await session.flush()
    await session.refresh(table)
    return table


async def list_ratio_tables(session: AsyncSession) -> list[StaffingRatioTable]:
    result = await session.execute(select(StaffingRatioTable).order_by(StaffingRatioTable.id))
    return list(result.scalars().all())


async def get_ratio_table(session: AsyncSession, table_id: int) -> RatioTable | None:
    """Load a stored ratio table as its validated domain form."""
    table = await session.get(StaffingRatioTable, table_id)
    if table is None:
        return None
    result = await session.execute(
        select(StaffingRatioBracket)
        .where(StaffingRatioBracket.table_id == table_id)
        .order_by(StaffingRatioBracket.min_participants)
    )
    brackets = [
        RatioBracket(
            min_participants=row.min_participants,
            max_participants=row.max_participants,
            required_staff=row.required_staff,
        )
        for row in result.scalars().all()
    ]
    return RatioTable(name=table.name, brackets=brackets)


async def list_enrolments(
    session: AsyncSession, *, start: date, end: date, rule_id: int | None = None
) -> list[ParticipantEnrolment]:
    """Enrolments whose active span intersects ``[start, end]``."""
    query = select(ParticipantEnrolment).where(
        ParticipantEnrolment.start_date <= end,
        or_(ParticipantEnrolment.end_date.is_(None), ParticipantEnrolment.end_date >= start),
    )
    if rule_id is not None:
        query = query.where(ParticipantEnrolment.rule_id == rule_id)
    result = await session.execute(query.order_by(ParticipantEnrolment.id))
    return list(result.scalars().all())


async def create_enrolment(
    session: AsyncSession, rule_id: int, payload: EnrolmentCreate
) -> ParticipantEnrolment:
    enrolment = ParticipantEnrolment(rule_id=rule_id, **payload.model_dump())
    session.add(enrolment)
    await session.flush()
    await session.refresh(enrolment)
    return enrolment


async def create_rate(session: AsyncSession, rule_id: int, payload: RateLineItemCreate) -> RateLineItem:
    rate = RateLineItem(rule_id=rule_id, **payload.model_dump())
    session.add(rate)
    await session.flush()
    await session.refresh(rate)
    return rate


async def list_rates(session: AsyncSession, rule_id: int) -> list[RateLineItem]:
    result = await session.execute(
        select(RateLineItem).where(RateLineItem.rule_id == rule_id).order_by(RateLineItem.id)
    )
    return list(result.scalars().all())


async def get_billing_rate(session: AsyncSession, rule_id: int) -> RateLineItem | None:
    """The rule's default rate line, falling back to its first one."""
    rates = await list_rates(session, rule_id)
    for rate in rates:
        if rate.is_default:
            return rate
    return rates[0] if rates else None
