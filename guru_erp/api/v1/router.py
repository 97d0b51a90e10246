from fastapi import APIRouter

from guru_erp.api.v1.endpoints import (
    auth,
    init,
    customers,
    machines,
    machine_types,
    parts,
    tickets,
    leads,
    users,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access ====================
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# ==================== Bootstrap ====================
api_router.include_router(init.router, prefix="/init", tags=["Init"])

# ==================== Customers & Machines ====================
api_router.include_router(customers.router, prefix="/customers", tags=["Customers"])
api_router.include_router(machines.router, prefix="/machines", tags=["Machines"])
api_router.include_router(machine_types.router, prefix="/machine-types", tags=["Machine Types"])

# ==================== Service Desk ====================
api_router.include_router(tickets.router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(parts.router, prefix="/parts", tags=["Parts"])

# ==================== Sales Pipeline ====================
api_router.include_router(leads.router, prefix="/leads", tags=["Leads"])
