from guru_erp.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from guru_erp.schemas.auth import LoginRequest, TokenResponse
from guru_erp.schemas.user import UserCreate, UserUpdate, UserResponse
from guru_erp.schemas.customer import (
    CustomerCreate, CustomerUpdate, CustomerResponse,
    MachineCreate, MachineUpdate, MachineResponse, AmcExpiryResponse,
)
from guru_erp.schemas.catalog import (
    PartCreate, PartUpdate, PartResponse, MachineTypeCreate, MachineTypeResponse,
)
from guru_erp.schemas.ticket import (
    TicketCreate, TicketUpdate, TechnicianAssignment, UsedItem, TicketCompletion,
    TicketCancellation, TicketResponse, AssignmentHistoryResponse,
    StockWarningResponse, TicketCompletionResponse,
)
from guru_erp.schemas.lead import (
    LeadCreate, LeadUpdate, LeadFollowUp, LeadEstimate, LeadSold, LeadLost,
    LeadConversion, LeadConversionResponse, LeadResponse, LeadHistoryResponse,
)
from guru_erp.schemas.init import InitDataResponse
