from fastapi import APIRouter, Depends, status

from smart_parking.application.dto import (
    EnterParkingRequest,
    EnterParkingResponse,
    ExitParkingRequest,
    ExitParkingResponse,
)
from smart_parking.application.services.session_service import EnterParking, ExitParking
from smart_parking.infrastructure.api import dependencies as deps
from smart_parking.infrastructure.api.schemas.requests import ExitBody

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("/entry", response_model=EnterParkingResponse, status_code=status.HTTP_201_CREATED)
async def enter_parking(
    request: EnterParkingRequest,
    use_case: EnterParking = Depends(deps.get_enter_parking),
):
    return await use_case.execute(request)


@router.post("/{session_id}/exit", response_model=ExitParkingResponse)
async def exit_parking(
    session_id: str,
    body: ExitBody,
    use_case: ExitParking = Depends(deps.get_exit_parking),
):
    return await use_case.execute(ExitParkingRequest(session_id=session_id, exit_time=body.exit_time))
