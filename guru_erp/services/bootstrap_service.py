"""Bootstrap Service - everything the client loads on start-up in one read."""
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.services.customer_service import CustomerService
from guru_erp.services.inventory_service import InventoryService
from guru_erp.services.lead_service import LeadService
from guru_erp.services.ticket_service import TicketService
from guru_erp.services.user_service import UserService


class BootstrapService:
    """Aggregates the per-entity services into the client's initial dataset."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_all(self) -> dict:
        customers = CustomerService(self.db)
        return {
            "tickets": await TicketService(self.db).list_tickets(),
            "customers": await customers.list_customers(),
            "leads": await LeadService(self.db).list_leads(),
            "parts": await InventoryService(self.db).list_parts(),
            "machine_types": await customers.list_machine_types(),
            "users": await UserService(self.db).list_users(),
            "amc_expiries": await customers.get_amc_expiries(),
        }
