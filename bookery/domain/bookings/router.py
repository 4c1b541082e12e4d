"""Bookings router - finalization and status changes"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ...auth import CurrentUser, get_current_user, get_optional_user
from ...dependencies import get_booking_finalizer, get_lifecycle_manager
from ...services.status_lifecycle import StatusLifecycleManager
from .finalizer import BookingFinalizer
from .schemas import FinalizeRequest, FinalizeResult, StatusTransitionRequest, StatusTransitionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/finalize", response_model=FinalizeResult)
async def finalize_booking(
    body: FinalizeRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
):
    """Create the booking for a paid reference; safe to call repeatedly"""
    return await finalizer.finalize(body.reference, actor_id=user.id if user else None)


@router.post("/{resource_type}/{resource_id}/status", response_model=StatusTransitionResponse)
async def transition_status(
    resource_type: str,
    resource_id: str,
    body: StatusTransitionRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: StatusLifecycleManager = Depends(get_lifecycle_manager),
):
    return manager.transition_status(
        resource_id,
        body.status,
        actor_id=user.id,
        resource_type=resource_type,
        notes=body.notes,
    )
