"""
FastAPI route: emergency contact registry.

    GET    /api/contacts        — list contacts in insertion order
    POST   /api/contacts        — add a contact (400 if name/phone missing)
    DELETE /api/contacts/{id}   — remove a contact (404 if unknown)
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends

from safe_signal.app.alerts.alert_service import AlertService
from safe_signal.app.api.deps import get_alert_service
from safe_signal.app.api.schemas import (
    ContactCreatedResponse,
    ContactCreateRequest,
    ContactListResponse,
    ContactOut,
    SuccessResponse,
)
from safe_signal.app.core.config import settings
from safe_signal.app.core.errors import NotFoundError
from safe_signal.app.core.logging_config import tag_request

router = APIRouter(prefix=f"{settings.API_PREFIX}/contacts", tags=["contacts"])

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


@router.get(
    "",
    response_model=ContactListResponse,
    summary="List emergency contacts",
)
async def list_contacts(service: AlertService = Depends(get_alert_service)):
    return ContactListResponse(
        contacts=[ContactOut.from_contact(c) for c in service.list_contacts()],
    )


@router.post(
    "",
    status_code=201,
    response_model=ContactCreatedResponse,
    summary="Add an emergency contact",
    description="Assigns the next contact id. name and phone are required.",
)
async def create_contact(
    body: ContactCreateRequest,
    service: AlertService = Depends(get_alert_service),
):
    contact = service.add_contact(body.name, body.phone, body.relation)
    tag_request(contact_id=contact.id)
    return ContactCreatedResponse(contact=ContactOut.from_contact(contact))


def _parse_contact_id(raw: str) -> int:
    """Leading integer of ``raw``; an id with no digits matches no contact."""
    match = _LEADING_INT.match(raw)
    if match is None:
        raise NotFoundError("Contact", id=raw)
    return int(match.group(0))


@router.delete(
    "/{contact_id}",
    response_model=SuccessResponse,
    summary="Remove an emergency contact",
)
async def delete_contact(
    contact_id: str,
    service: AlertService = Depends(get_alert_service),
):
    parsed_id = _parse_contact_id(contact_id)
    tag_request(contact_id=parsed_id)
    service.delete_contact(parsed_id)
    return SuccessResponse()
