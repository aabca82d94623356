from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.db.session import get_db_session
from loom_scheduler.repositories import resource as resource_repo
from loom_scheduler.schemas.resource import (
    ParticipantCreate,
    ParticipantRead,
    ParticipantUpdate,
    StaffCreate,
    StaffRead,
    StaffUpdate,
    VehicleCreate,
    VehicleRead,
    VenueCreate,
    VenueRead,
)

router = APIRouter()

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("/venues", response_model=list[VenueRead])
async def list_venues(session: SessionDep) -> list[VenueRead]:
    return [VenueRead.model_validate(venue) for venue in await resource_repo.list_venues(session)]


@router.post("/venues", response_model=VenueRead, status_code=status.HTTP_201_CREATED)
async def create_venue(payload: VenueCreate, session: SessionDep) -> VenueRead:
    venue = await resource_repo.create_venue(session, payload)
    await session.commit()
    return VenueRead.model_validate(venue)


@router.get("/participants", response_model=list[ParticipantRead])
async def list_participants(session: SessionDep) -> list[ParticipantRead]:
    participants = await resource_repo.list_participants(session)
    return [ParticipantRead.model_validate(participant) for participant in participants]


@router.post("/participants", response_model=ParticipantRead, status_code=status.HTTP_201_CREATED)
async def create_participant(payload: ParticipantCreate, session: SessionDep) -> ParticipantRead:
    participant = await resource_repo.create_participant(session, payload)
    await session.commit()
    return ParticipantRead.model_validate(participant)


@router.put("/participants/{participant_id}", response_model=ParticipantRead)
async def update_participant(
    participant_id: int, payload: ParticipantUpdate, session: SessionDep
) -> ParticipantRead:
    participant = await resource_repo.get_participant(session, participant_id)
    if not participant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    participant = await resource_repo.update_participant(session, participant, payload)
    await session.commit()
    return ParticipantRead.model_validate(participant)


@router.get("/staff", response_model=list[StaffRead])
async def list_staff(session: SessionDep) -> list[StaffRead]:
    return [StaffRead.model_validate(staff) for staff in await resource_repo.list_staff(session)]


@router.post("/staff", response_model=StaffRead, status_code=status.HTTP_201_CREATED)
async def create_staff(payload: StaffCreate, session: SessionDep) -> StaffRead:
    staff = await resource_repo.create_staff(session, payload)
    await session.commit()
    return StaffRead.model_validate(staff)


@router.put("/staff/{staff_id}", response_model=StaffRead)
async def update_staff(staff_id: int, payload: StaffUpdate, session: SessionDep) -> StaffRead:
    staff = await resource_repo.get_staff(session, staff_id)
    if not staff:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")
    staff = await resource_repo.update_staff(session, staff, payload)
    await session.commit()
    return StaffRead.model_validate(staff)


@router.get("/vehicles", response_model=list[VehicleRead])
async def list_vehicles(session: SessionDep) -> list[VehicleRead]:
    return [VehicleRead.model_validate(vehicle) for vehicle in await resource_repo.list_vehicles(session)]


@router.post("/vehicles", response_model=VehicleRead, status_code=status.HTTP_201_CREATED)
async def create_vehicle(payload: VehicleCreate, session: SessionDep) -> VehicleRead:
    vehicle = await resource_repo.create_vehicle(session, payload)
    await session.commit()
    return VehicleRead.model_validate(vehicle)
