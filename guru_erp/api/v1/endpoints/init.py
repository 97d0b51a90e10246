"""Bootstrap endpoint."""
from fastapi import APIRouter

from guru_erp.api.deps import DB, CurrentUser
from guru_erp.schemas.init import InitDataResponse
from guru_erp.services.bootstrap_service import BootstrapService


router = APIRouter(tags=["Init"])


@router.get("", response_model=InitDataResponse)
async def fetch_all(db: DB, current_user: CurrentUser):
    """Every collection the client caches, in one call."""
    data = await BootstrapService(db).fetch_all()
    return InitDataResponse.model_validate(data, from_attributes=True)
