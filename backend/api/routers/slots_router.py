"""Slot board API routes."""

import logging
from collections.abc import Awaitable
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.core.dependencies import get_current_identity, get_slot_service
from api.core.errors import http_error
from api.services import SlotService
from shared.exceptions import SlotBoardError
from shared.models.slot import Slot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/slots", tags=["slots"])


# ============================================
# Response / Request Models
# ============================================


class SlotResponse(BaseModel):
    id: str
    creator_name: str
    start_time: datetime
    player1: str
    player2: str
    player3: str
    player4: str
    player1_comment: str
    player2_comment: str
    player3_comment: str
    player4_comment: str
    substitute: str
    waiting_queue: list[str]
    status: str
    notification_sent: bool
    created_at: datetime | None = None
    version: int


class StartTimeRequest(BaseModel):
    start_time: str = Field(..., description="Clock time HH:MM, today in the board timezone")


class NoteRequest(BaseModel):
    text: str = Field(default="", max_length=200)


def _response(slot: Slot) -> SlotResponse:
    return SlotResponse(**asdict(slot))


async def _run(operation: Awaitable[Slot], action: str) -> SlotResponse:
    """Await a service call and translate its errors"""
    try:
        return _response(await operation)
    except SlotBoardError as e:
        logger.info(f"Slot {action} rejected: {e.code}")
        raise http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to {action} slot: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {action} slot") from None


# ============================================
# Listing
# ============================================


@router.get("", response_model=list[SlotResponse])
async def list_slots(service: SlotService = Depends(get_slot_service)) -> list[SlotResponse]:
    """Active slots from today onwards, soonest first."""
    try:
        slots = await service.list_slots()
    except SlotBoardError as e:
        raise http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to list slots: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch slots") from None
    return [_response(s) for s in slots]


@router.get("/{slot_id}", response_model=SlotResponse)
async def get_slot(
    slot_id: str, service: SlotService = Depends(get_slot_service)
) -> SlotResponse:
    return await _run(service.get_slot(slot_id), "fetch")


# ============================================
# Creator Endpoints
# ============================================


@router.post("", response_model=SlotResponse, status_code=201)
async def create_slot(
    body: StartTimeRequest,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.create_slot(identity, body.start_time), "create")


@router.put("/{slot_id}/start-time", response_model=SlotResponse)
async def edit_start_time(
    slot_id: str,
    body: StartTimeRequest,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.edit_start_time(slot_id, identity, body.start_time), "edit")


@router.post("/{slot_id}/cancel", response_model=SlotResponse)
async def cancel_slot(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.cancel_slot(slot_id, identity), "cancel")


@router.post("/{slot_id}/remove-self", response_model=SlotResponse)
async def remove_self_as_creator(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    """Creator vacates player 1; the slot stays active."""
    return await _run(service.remove_self_as_creator(slot_id, identity), "update")


# ============================================
# Player Endpoints
# ============================================


@router.post("/{slot_id}/join", response_model=SlotResponse)
async def join_slot(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.join_slot(slot_id, identity), "join")


@router.post("/{slot_id}/leave", response_model=SlotResponse)
async def leave_slot(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.leave_slot(slot_id, identity), "leave")


@router.put("/{slot_id}/notes/{seat}", response_model=SlotResponse)
async def set_note(
    slot_id: str,
    seat: str,
    body: NoteRequest,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    """Write the comment of a seat you occupy (seat: player1..player4 or 1..4)."""
    return await _run(service.set_position_note(slot_id, identity, seat, body.text), "comment")


@router.post("/{slot_id}/queue", response_model=SlotResponse)
async def join_waiting_queue(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.join_waiting_queue(slot_id, identity), "queue")


@router.delete("/{slot_id}/queue", response_model=SlotResponse)
async def leave_waiting_queue(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.leave_waiting_queue(slot_id, identity), "unqueue")


@router.post("/{slot_id}/substitute", response_model=SlotResponse)
async def claim_substitute(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.claim_substitute(slot_id, identity), "substitute")


@router.delete("/{slot_id}/substitute", response_model=SlotResponse)
async def release_substitute(
    slot_id: str,
    identity: str = Depends(get_current_identity),
    service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    return await _run(service.release_substitute(slot_id, identity), "release")
