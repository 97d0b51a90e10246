"""Lead pipeline API endpoints."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.models.lead import LeadStatus
from guru_erp.models.user import UserRole
from guru_erp.schemas.lead import (
    LeadCreate,
    LeadUpdate,
    LeadFollowUp,
    LeadEstimate,
    LeadSold,
    LeadLost,
    LeadConversion,
    LeadConversionResponse,
    LeadResponse,
    LeadHistoryResponse,
)
from guru_erp.services.lead_service import LeadService


router = APIRouter(tags=["Leads"])


@router.get("", response_model=List[LeadResponse])
async def list_leads(
    db: DB,
    current_user: CurrentUser,
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
):
    leads = await LeadService(db).list_leads(status=lead_status.value if lead_status else None)
    return [LeadResponse.model_validate(lead) for lead in leads]


@router.post(
    "",
    response_model=LeadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_lead(data: LeadCreate, db: DB):
    lead = await LeadService(db).create_lead(data.model_dump())
    return LeadResponse.model_validate(lead)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(lead_id: uuid.UUID, db: DB, current_user: CurrentUser):
    lead = await LeadService(db).get_lead(lead_id)
    return LeadResponse.model_validate(lead)


@router.patch("/{lead_id}", response_model=LeadResponse, dependencies=[StaffOnly])
async def update_lead(lead_id: uuid.UUID, data: LeadUpdate, db: DB, current_user: CurrentUser):
    """
    Generic edit. Notes are appended to the existing notes.
    Setting `override` skips status transition checks and requires ADMIN.
    """
    if data.override and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can override status transitions"
        )
    update_data = data.model_dump(exclude_unset=True, exclude={"override"})
    lead = await LeadService(db).update_lead(lead_id, update_data, override=data.override)
    return LeadResponse.model_validate(lead)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[StaffOnly])
async def delete_lead(lead_id: uuid.UUID, db: DB):
    await LeadService(db).delete_lead(lead_id)


@router.post("/{lead_id}/follow-up", response_model=LeadResponse, dependencies=[StaffOnly])
async def schedule_follow_up(lead_id: uuid.UUID, data: LeadFollowUp, db: DB):
    lead = await LeadService(db).schedule_follow_up(lead_id, data.next_follow_up, data.notes)
    return LeadResponse.model_validate(lead)


@router.post("/{lead_id}/estimate", response_model=LeadResponse, dependencies=[StaffOnly])
async def send_estimate(lead_id: uuid.UUID, data: LeadEstimate, db: DB):
    lead = await LeadService(db).send_estimate(lead_id, data.estimate_value, data.notes)
    return LeadResponse.model_validate(lead)


@router.post("/{lead_id}/sold", response_model=LeadResponse, dependencies=[StaffOnly])
async def mark_sold(lead_id: uuid.UUID, data: LeadSold, db: DB):
    lead = await LeadService(db).mark_sold(lead_id, data.notes)
    return LeadResponse.model_validate(lead)


@router.post("/{lead_id}/lost", response_model=LeadResponse, dependencies=[StaffOnly])
async def mark_lost(lead_id: uuid.UUID, data: LeadLost, db: DB):
    lead = await LeadService(db).mark_lost(lead_id, data.reason, data.notes)
    return LeadResponse.model_validate(lead)


@router.post("/{lead_id}/convert", response_model=LeadConversionResponse, dependencies=[StaffOnly])
async def convert_lead(lead_id: uuid.UUID, data: LeadConversion, db: DB):
    """
    Convert a SOLD lead into a customer.

    Reuses an existing customer with the same phone. Optionally registers a
    machine and opens an INSTALLATION ticket.
    """
    result = await LeadService(db).convert_to_customer(lead_id, data.model_dump())
    return LeadConversionResponse(**result)


@router.get("/{lead_id}/history", response_model=List[LeadHistoryResponse])
async def get_lead_history(lead_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Lead activity, most recent first."""
    history = await LeadService(db).get_history(lead_id)
    return [LeadHistoryResponse.model_validate(h) for h in history]
