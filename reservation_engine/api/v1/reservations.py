"""Reservations API router.

Ownership rule for host decisions: a host can only approve or reject
reservations on **their** properties; anything else is reported as 404.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.api.deps import get_db, get_state_machine
from reservation_engine.api.errors import to_http_exception
from reservation_engine.errors import ReservationError
from reservation_engine.models.property import Property
from reservation_engine.models.reservation import Reservation, ReservationStatus
from reservation_engine.schemas.reservation import (
    CancelRequest,
    HostDecision,
    PaymentIntentResponse,
    ReservationCreate,
    ReservationCreatedResponse,
    ReservationListResponse,
    ReservationResponse,
)
from reservation_engine.services.reservation_machine import ReservationStateMachine

router = APIRouter(prefix="/api/v1/reservations", tags=["reservations"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _check_host_owns(
    reservation_id: uuid.UUID,
    host_id: uuid.UUID,
    db: AsyncSession,
) -> None:
    """Raise 404 unless the reservation is on a property owned by ``host_id``."""
    result = await db.execute(
        select(Reservation.id)
        .join(Property, Reservation.property_id == Property.id)
        .where(Reservation.id == reservation_id, Property.owner_id == host_id)
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": "Reservation not found"},
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ReservationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a reservation",
)
async def create_reservation(
    body: ReservationCreate,
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> dict:
    """Open a reservation for the requested dates.

    Online reservations start PENDING_PAYMENT with a short hold and a payment
    intent; cash-on-arrival reservations start PENDING_HOST_APPROVAL.
    A 409 ``slot_unavailable`` means the client should offer other dates.
    """
    try:
        reservation = await machine.create_reservation(
            property_id=body.property_id,
            guest_id=body.guest_id,
            check_in=body.check_in,
            check_out=body.check_out,
            guest_count=body.guest_count,
            payment_method=body.payment_method,
            special_requests=body.special_requests,
        )
    except ReservationError as e:
        raise to_http_exception(e) from e

    data = ReservationResponse.model_validate(reservation).model_dump()
    data["payment_intent_ref"] = await machine.payment_intent_ref(reservation.id)
    return data


@router.get(
    "",
    response_model=ReservationListResponse,
    summary="List reservations",
)
async def list_reservations(
    guest_id: uuid.UUID | None = Query(None, description="Filter by guest"),
    property_id: uuid.UUID | None = Query(None, description="Filter by property"),
    status_filter: ReservationStatus | None = Query(None, alias="status", description="Filter by status"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> dict:
    """Return a paginated list of reservations, newest first."""
    items, total = await machine.list_reservations(
        guest_id=guest_id,
        property_id=property_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return {"items": items, "total": total}


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get a reservation",
)
async def get_reservation(
    reservation_id: uuid.UUID,
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> Reservation:
    try:
        return await machine.get_reservation(reservation_id)
    except ReservationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{reservation_id}/payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create (or fetch) the payment intent of an online reservation",
)
async def ensure_payment_intent(
    reservation_id: uuid.UUID,
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> dict:
    """Idempotent: retrying after a gateway error never creates a second charge."""
    try:
        intent_ref = await machine.ensure_payment_intent(reservation_id)
    except ReservationError as e:
        raise to_http_exception(e) from e
    return {"reservation_id": reservation_id, "payment_intent_ref": intent_ref}


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    summary="Cancel a reservation",
)
async def cancel_reservation(
    reservation_id: uuid.UUID,
    body: CancelRequest,
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> Reservation:
    """Cancel and refund per policy. Refund settlement may complete after the response."""
    try:
        return await machine.cancel(
            reservation_id,
            actor=body.actor,
            reason=body.reason,
            expected_status=body.expected_status,
        )
    except ReservationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{reservation_id}/approve",
    response_model=ReservationResponse,
    summary="Host approves a cash-on-arrival reservation",
)
async def approve_reservation(
    reservation_id: uuid.UUID,
    body: HostDecision,
    db: AsyncSession = Depends(get_db),
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> Reservation:
    await _check_host_owns(reservation_id, body.host_id, db)
    try:
        return await machine.approve(reservation_id, host_id=body.host_id)
    except ReservationError as e:
        raise to_http_exception(e) from e


@router.post(
    "/{reservation_id}/reject",
    response_model=ReservationResponse,
    summary="Host rejects a cash-on-arrival reservation",
)
async def reject_reservation(
    reservation_id: uuid.UUID,
    body: HostDecision,
    db: AsyncSession = Depends(get_db),
    machine: ReservationStateMachine = Depends(get_state_machine),
) -> Reservation:
    await _check_host_owns(reservation_id, body.host_id, db)
    try:
        return await machine.reject(reservation_id, host_id=body.host_id, reason=body.reason)
    except ReservationError as e:
        raise to_http_exception(e) from e
