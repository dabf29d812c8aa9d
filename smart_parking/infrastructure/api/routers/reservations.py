from fastapi import APIRouter, Depends, status

from smart_parking.application.dto import (
    CancelReservationRequest,
    CreateReservationRequest,
    GenerateInvoiceRequest,
    InvoiceResponse,
    ReservationResponse,
)
from smart_parking.application.services.reservation_service import (
    CancelReservation,
    CreateReservation,
    GenerateInvoice,
)
from smart_parking.infrastructure.api import dependencies as deps
from smart_parking.infrastructure.api.schemas.requests import UserBody

router = APIRouter(prefix="/api/reservations", tags=["reservations"])


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    request: CreateReservationRequest,
    use_case: CreateReservation = Depends(deps.get_create_reservation),
):
    return await use_case.execute(request)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: str,
    body: UserBody,
    use_case: CancelReservation = Depends(deps.get_cancel_reservation),
):
    return await use_case.execute(CancelReservationRequest(reservation_id=reservation_id, user_id=body.user_id))


@router.get("/{reservation_id}/invoice", response_model=InvoiceResponse)
async def generate_invoice(
    reservation_id: str,
    user_id: str,
    use_case: GenerateInvoice = Depends(deps.get_generate_invoice),
):
    return await use_case.execute(GenerateInvoiceRequest(reservation_id=reservation_id, user_id=user_id))
