from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from barberflow.dependencies import get_availability_calculator
from barberflow.schemas.booking import AvailabilityOut, SlotOut
from barberflow.services.availability import AvailabilityCalculator

router = APIRouter(tags=["scheduling"])


@router.get("/availability", response_model=AvailabilityOut)
async def get_availability(
    barber_id: UUID = Query(alias="barberId"),
    day: date = Query(alias="date"),
    calculator: AvailabilityCalculator = Depends(get_availability_calculator),
) -> AvailabilityOut:
    slots = await calculator.availability(str(barber_id), day)
    return AvailabilityOut(
        slots=[SlotOut(start_time=slot.start_time, end_time=slot.end_time) for slot in slots]
    )
