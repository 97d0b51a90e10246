"""
Client Coordinator - optimistic updates with rollback.

Every mutation follows the same path through with_optimistic_update:

    lock touched collections -> snapshot -> apply locally -> remote call
        success: merge server response (commit), optionally reload everything
        failure: restore snapshot, one notification, MutationResult(False)

Local validation reuses the server's state machines, so a move the server
would reject never reaches the network.
"""
import asyncio
import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from guru_erp.config import settings
from guru_erp.core.exceptions import (
    BusinessRuleError, DomainError, NotFoundError, ValidationFailed,
)
from guru_erp.client.fallback import fallback_dataset
from guru_erp.client.gateway import RemoteError, RemoteGateway
from guru_erp.client.notifications import LoggingNotifier, Notifier
from guru_erp.client.state import AppState
from guru_erp.models.lead import LeadStatus
from guru_erp.models.ticket import TicketStatus
from guru_erp.models.user import UserRole, UserStatus
from guru_erp.services import lead_state_machine, ticket_state_machine


logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Outcome of one optimistic mutation."""
    success: bool
    value: Any = None
    error: Optional[Exception] = None


def _iso(value) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ClientCoordinator:
    """
    Owns the client AppState and sequences every read and write against it.

    Usage:
        coordinator = ClientCoordinator(RemoteGateway())
        await coordinator.login("admin@gurutech.in", "Admin@123")
        result = await coordinator.assign_ticket(ticket_id, technician_id, "2024-06-18T09:00:00")
        if not result.success:
            ...  # state already rolled back, user already notified
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        notifier: Optional[Notifier] = None,
        state: Optional[AppState] = None,
        remote_timeout: Optional[float] = None,
    ):
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.state = state or AppState()
        self.remote_timeout = remote_timeout or settings.CLIENT_REMOTE_TIMEOUT_SECONDS
        self._locks = {name: asyncio.Lock() for name in AppState.COLLECTIONS}

    # ==================== LOADING ====================

    async def login(self, email: str, password: str) -> Dict:
        """Authenticate, then load every collection. Raises RemoteError on failure."""
        user = await self.gateway.authenticate(email, password)
        self.state.current_user = user
        await self.load()
        return user

    async def load(self) -> None:
        """
        Initial load. When the server is unreachable the demo dataset is
        used and the state is flagged offline.
        """
        try:
            data = await asyncio.wait_for(self.gateway.fetch_all(), timeout=self.remote_timeout)
        except (RemoteError, asyncio.TimeoutError) as exc:
            logger.warning("Initial load failed (%s); running on demo data", exc)
            self.state.replace_all(fallback_dataset())
            self.state.is_offline = True
            self.notifier.notify("Server unreachable. Showing demo data.", "warning")
            return

        self.state.replace_all(data)
        self.state.is_offline = False

    async def reload(self) -> bool:
        """Refetch everything. On failure the current state is kept."""
        async with self._lock_all(AppState.BULK_COLLECTIONS):
            try:
                data = await asyncio.wait_for(self.gateway.fetch_all(), timeout=self.remote_timeout)
            except (RemoteError, asyncio.TimeoutError) as exc:
                logger.warning("Reload failed: %s", exc)
                return False
            self.state.replace_all(data)
            self.state.is_offline = False
            return True

    # ==================== CORE ====================

    async def with_optimistic_update(
        self,
        action: str,
        collections: Iterable[str],
        apply: Callable[[AppState], None],
        remote_call: Callable[[], Awaitable[Any]],
        *,
        commit: Optional[Callable[[AppState, Any], None]] = None,
        reload: bool = False,
    ) -> MutationResult:
        """
        Apply a change locally, confirm it remotely, roll back on failure.

        Args:
            action: Human-readable name used in notifications
            collections: AppState collections the mutation touches
            apply: Mutates the state; raise a DomainError to reject locally
            remote_call: Zero-argument coroutine factory for the server call
            commit: Merges the server response into the state on success
            reload: Refetch every collection after success
        """
        async with self._lock_all(collections):
            snapshot = self.state.snapshot(self._ordered(collections))
            try:
                apply(self.state)
                result = await asyncio.wait_for(remote_call(), timeout=self.remote_timeout)
            except (DomainError, RemoteError, asyncio.TimeoutError) as exc:
                self.state.restore(snapshot)
                logger.warning("%s rolled back: %s", action, exc)
                self.notifier.notify(f"{action} failed: {self._describe(exc)}", "error")
                return MutationResult(success=False, error=exc)
            except Exception:
                self.state.restore(snapshot)
                raise

            if commit and result is not None:
                commit(self.state, result)

        if reload:
            await self.reload()

        self.notifier.notify(f"{action} succeeded", "success")
        return MutationResult(success=True, value=result)

    def _ordered(self, collections: Iterable[str]) -> List[str]:
        names = set(collections)
        unknown = names.difference(AppState.COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown collections: {', '.join(sorted(unknown))}")
        return [name for name in AppState.COLLECTIONS if name in names]

    @asynccontextmanager
    async def _lock_all(self, collections: Iterable[str]):
        """Acquire the per-collection locks in AppState.COLLECTIONS order."""
        async with AsyncExitStack() as stack:
            for name in self._ordered(collections):
                await stack.enter_async_context(self._locks[name])
            yield

    @staticmethod
    def _describe(exc: Exception) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return "server did not respond in time"
        return getattr(exc, "message", None) or str(exc)

    @staticmethod
    def _require(state: AppState, collection: str, entity_id, label: str) -> Dict:
        entity = state.find(collection, entity_id)
        if entity is None:
            raise NotFoundError(label, entity_id)
        return entity

    # ==================== CUSTOMERS & MACHINES ====================

    async def create_customer(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "machines": [], **data}
        payload["machines"] = [{"id": str(uuid.uuid4()), **m} for m in payload["machines"]]

        def apply(state: AppState):
            if any(c["phone"] == payload["phone"] for c in state.customers):
                raise ValidationFailed(f"Customer with phone {payload['phone']} already exists")
            local = {"customer_type": "SERVICE_ONLY", "address": None, "created_at": _now(), **payload}
            local["machines"] = [dict(m, customer_id=payload["id"]) for m in payload["machines"]]
            state.customers.append(local)

        return await self.with_optimistic_update(
            "Create customer", ["customers"], apply,
            lambda: self.gateway.create_customer(payload),
            commit=lambda state, saved: state.upsert("customers", saved),
        )

    async def update_customer(self, customer_id, changes: Dict) -> MutationResult:
        def apply(state: AppState):
            customer = self._require(state, "customers", customer_id, "Customer")
            customer.update(changes)
            if "name" in changes:
                for ticket in state.tickets:
                    if str(ticket["customer_id"]) == str(customer_id):
                        ticket["customer_name"] = changes["name"]

        return await self.with_optimistic_update(
            "Update customer", ["customers", "tickets"], apply,
            lambda: self.gateway.update_customer(customer_id, changes),
            commit=lambda state, saved: state.upsert("customers", saved),
        )

    async def add_machine(self, customer_id, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), **data}

        def apply(state: AppState):
            customer = self._require(state, "customers", customer_id, "Customer")
            customer.setdefault("machines", []).append(
                {"amc_active": False, "amc_expiry": None, "warranty_expiry": None,
                 "machine_type_id": None, **payload, "customer_id": str(customer_id)}
            )

        return await self.with_optimistic_update(
            "Add machine", ["customers"], apply,
            lambda: self.gateway.add_machine(customer_id, payload),
            reload=True,
        )

    async def update_machine(self, machine_id, changes: Dict) -> MutationResult:
        def apply(state: AppState):
            machine = state.find_machine(machine_id)
            if machine is None:
                raise NotFoundError("Machine", machine_id)
            machine.update(changes)
            if machine.get("amc_active") is False:
                machine["amc_expiry"] = None

        return await self.with_optimistic_update(
            "Update machine", ["customers", "amc_expiries"], apply,
            lambda: self.gateway.update_machine(machine_id, changes),
            reload=True,
        )

    async def delete_machine(self, machine_id) -> MutationResult:
        def apply(state: AppState):
            if state.find_machine(machine_id) is None:
                raise NotFoundError("Machine", machine_id)
            for customer in state.customers:
                customer["machines"] = [
                    m for m in customer.get("machines", []) if str(m["id"]) != str(machine_id)
                ]
            for ticket in state.tickets:
                if str(ticket.get("machine_id")) == str(machine_id):
                    ticket["machine_id"] = None
            state.amc_expiries = [
                e for e in state.amc_expiries if str(e["machine_id"]) != str(machine_id)
            ]

        return await self.with_optimistic_update(
            "Delete machine", ["customers", "tickets", "amc_expiries"], apply,
            lambda: self.gateway.delete_machine(machine_id),
            reload=True,
        )

    async def renew_amc(self, machine_id) -> MutationResult:
        """Open an AMC renewal ticket. The ticket appears once the server confirms it."""
        def apply(state: AppState):
            machine = state.find_machine(machine_id)
            if machine is None:
                raise NotFoundError("Machine", machine_id)
            if not machine.get("amc_active"):
                raise BusinessRuleError("Machine has no active AMC")

        return await self.with_optimistic_update(
            "Create AMC renewal ticket", ["tickets"], apply,
            lambda: self.gateway.create_amc_renewal_ticket(machine_id),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    # ==================== TICKETS ====================

    async def create_ticket(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "priority": "MEDIUM", **data}
        payload["scheduled_date"] = _iso(payload.get("scheduled_date"))

        def apply(state: AppState):
            if not (payload.get("description") or "").strip():
                raise ValidationFailed("Description is required")
            customer = self._require(state, "customers", payload["customer_id"], "Customer")
            state.tickets.insert(0, {
                "ticket_number": "",
                "customer_name": customer["name"],
                "machine_id": None,
                "status": TicketStatus.PENDING.value,
                "assigned_technician_id": None,
                "started_at": None,
                "completed_date": None,
                "items_used": [],
                "service_charge": 0.0,
                "total_amount": 0.0,
                "payment_mode": None,
                "technician_notes": None,
                "next_follow_up": None,
                "cancellation_reason": None,
                "created_at": _now(),
                "updated_at": _now(),
                **payload,
            })

        return await self.with_optimistic_update(
            "Create ticket", ["tickets"], apply,
            lambda: self.gateway.create_ticket(payload),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    async def assign_ticket(self, ticket_id, technician_id, scheduled_date=None) -> MutationResult:
        scheduled_date = _iso(scheduled_date)

        def apply(state: AppState):
            ticket = self._require(state, "tickets", ticket_id, "Ticket")
            ticket_state_machine.validate_transition(ticket["status"], TicketStatus.ASSIGNED)
            technician = self._require(state, "users", technician_id, "User")
            if technician["role"] != UserRole.TECHNICIAN.value or technician["status"] != UserStatus.ACTIVE.value:
                raise BusinessRuleError("Tickets can only be assigned to active technicians")

            ticket["status"] = TicketStatus.ASSIGNED.value
            ticket["assigned_technician_id"] = str(technician_id)
            if scheduled_date is not None:
                ticket["scheduled_date"] = scheduled_date
            state.ticket_history.setdefault(str(ticket_id), []).insert(0, {
                "id": None,
                "ticket_id": str(ticket_id),
                "technician_id": str(technician_id),
                "assigned_at": _now(),
                "scheduled_date": ticket["scheduled_date"],
            })

        return await self.with_optimistic_update(
            "Assign technician", ["tickets", "ticket_history"], apply,
            lambda: self.gateway.assign_ticket(ticket_id, technician_id, scheduled_date),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    async def start_ticket(self, ticket_id) -> MutationResult:
        def apply(state: AppState):
            ticket = self._require(state, "tickets", ticket_id, "Ticket")
            ticket_state_machine.validate_transition(ticket["status"], TicketStatus.IN_PROGRESS)
            ticket["status"] = TicketStatus.IN_PROGRESS.value
            ticket["started_at"] = _now()

        return await self.with_optimistic_update(
            "Start work", ["tickets"], apply,
            lambda: self.gateway.start_ticket(ticket_id),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    async def complete_ticket(
        self,
        ticket_id,
        items: List[Dict],
        service_charge=0,
        payment_mode: str = "NOT_PAID",
        technician_notes: Optional[str] = None,
        next_follow_up=None,
    ) -> MutationResult:
        """Close a ticket. Stock is decremented locally and everything is reloaded after."""
        payload = {
            "items": [{"part_id": str(i["part_id"]), "quantity": int(i["quantity"])} for i in items],
            "service_charge": service_charge,
            "payment_mode": payment_mode,
            "technician_notes": technician_notes,
            "next_follow_up": _iso(next_follow_up),
        }

        def apply(state: AppState):
            ticket = self._require(state, "tickets", ticket_id, "Ticket")
            ticket_state_machine.validate_transition(ticket["status"], TicketStatus.COMPLETED)

            used = []
            for item in payload["items"]:
                part = self._require(state, "parts", item["part_id"], "Part")
                used.append({"part_id": item["part_id"], "quantity": item["quantity"], "cost": float(part["price"])})
                part["stock_quantity"] = max(int(part["stock_quantity"]) - item["quantity"], 0)

            ticket.update({
                "status": TicketStatus.COMPLETED.value,
                "items_used": used,
                "service_charge": float(service_charge),
                "total_amount": float(ticket_state_machine.compute_total_amount(service_charge, used)),
                "payment_mode": payment_mode,
                "technician_notes": technician_notes,
                "next_follow_up": payload["next_follow_up"],
                "completed_date": date.today().isoformat(),
            })

        return await self.with_optimistic_update(
            "Complete ticket", ["tickets", "parts"], apply,
            lambda: self.gateway.complete_ticket(ticket_id, payload),
            reload=True,
        )

    async def cancel_ticket(self, ticket_id, reason: str) -> MutationResult:
        def apply(state: AppState):
            if not reason or not reason.strip():
                raise ValidationFailed("Cancellation reason is required")
            ticket = self._require(state, "tickets", ticket_id, "Ticket")
            ticket_state_machine.validate_transition(ticket["status"], TicketStatus.CANCELLED)
            ticket["status"] = TicketStatus.CANCELLED.value
            ticket["cancellation_reason"] = reason.strip()

        return await self.with_optimistic_update(
            "Cancel ticket", ["tickets"], apply,
            lambda: self.gateway.cancel_ticket(ticket_id, reason),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    async def update_ticket(self, ticket_id, changes: Dict, override: bool = False) -> MutationResult:
        changes = {key: _iso(value) for key, value in changes.items()}

        def apply(state: AppState):
            ticket = self._require(state, "tickets", ticket_id, "Ticket")
            new_status = changes.get("status")
            if new_status and new_status != ticket["status"] and not override:
                ticket_state_machine.validate_direct_update(ticket["status"], new_status)
            ticket.update(changes)

        return await self.with_optimistic_update(
            "Update ticket", ["tickets"], apply,
            lambda: self.gateway.update_ticket(ticket_id, {**changes, "override": override}),
            commit=lambda state, saved: state.upsert("tickets", saved),
        )

    async def fetch_ticket_history(self, ticket_id) -> List[Dict]:
        history = await self.gateway.get_ticket_history(ticket_id)
        async with self._lock_all(["ticket_history"]):
            self.state.ticket_history[str(ticket_id)] = history
        return history

    # ==================== LEADS ====================

    async def create_lead(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "source": "Walk-in", **data}

        def apply(state: AppState):
            state.leads.insert(0, {
                "email": None, "address": None, "next_follow_up": None,
                "estimate_value": None, "loss_reason": None, "converted_customer_id": None,
                "created_at": _now(), "updated_at": _now(),
                **payload,
                "status": LeadStatus.NEW.value,
                "notes": lead_state_machine.append_notes("", payload.get("notes")),
            })

        return await self.with_optimistic_update(
            "Create lead", ["leads"], apply,
            lambda: self.gateway.create_lead(payload),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    def _lead_step(self, lead_id, new_status: LeadStatus, notes: Optional[str], **fields):
        def apply(state: AppState):
            lead = self._require(state, "leads", lead_id, "Lead")
            lead_state_machine.validate_transition(lead["status"], new_status)
            lead["status"] = new_status.value
            lead["notes"] = lead_state_machine.append_notes(lead.get("notes"), notes)
            lead.update(fields)
        return apply

    async def schedule_follow_up(self, lead_id, next_follow_up, notes: Optional[str] = None) -> MutationResult:
        next_follow_up = _iso(next_follow_up)
        return await self.with_optimistic_update(
            "Schedule follow-up", ["leads"],
            self._lead_step(lead_id, LeadStatus.FOLLOW_UP, notes, next_follow_up=next_follow_up),
            lambda: self.gateway.schedule_follow_up(lead_id, next_follow_up, notes),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    async def send_estimate(self, lead_id, estimate_value, notes: Optional[str] = None) -> MutationResult:
        return await self.with_optimistic_update(
            "Send estimate", ["leads"],
            self._lead_step(lead_id, LeadStatus.ESTIMATE_SENT, notes, estimate_value=float(estimate_value)),
            lambda: self.gateway.send_estimate(lead_id, estimate_value, notes),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    async def mark_sold(self, lead_id, notes: Optional[str] = None) -> MutationResult:
        return await self.with_optimistic_update(
            "Mark lead sold", ["leads"],
            self._lead_step(lead_id, LeadStatus.SOLD, notes),
            lambda: self.gateway.mark_sold(lead_id, notes),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    async def mark_lost(self, lead_id, reason: str, notes: Optional[str] = None) -> MutationResult:
        step = self._lead_step(lead_id, LeadStatus.LOST, notes, loss_reason=(reason or "").strip())

        def apply(state: AppState):
            if not reason or not reason.strip():
                raise ValidationFailed("Loss reason is required")
            step(state)

        return await self.with_optimistic_update(
            "Mark lead lost", ["leads"], apply,
            lambda: self.gateway.mark_lost(lead_id, reason, notes),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    async def convert_lead(self, lead_id, details: Optional[Dict] = None) -> MutationResult:
        """Convert a SOLD lead. The new customer and ticket arrive with the reload."""
        def apply(state: AppState):
            lead = self._require(state, "leads", lead_id, "Lead")
            lead_state_machine.validate_transition(lead["status"], LeadStatus.CONVERTED)
            lead["status"] = LeadStatus.CONVERTED.value

        return await self.with_optimistic_update(
            "Convert lead", ["customers", "tickets", "leads"], apply,
            lambda: self.gateway.convert_lead(lead_id, details),
            reload=True,
        )

    async def update_lead(self, lead_id, changes: Dict, override: bool = False) -> MutationResult:
        changes = {key: _iso(value) for key, value in changes.items()}

        def apply(state: AppState):
            lead = self._require(state, "leads", lead_id, "Lead")
            new_status = changes.get("status")
            if new_status and new_status != lead["status"] and not override:
                lead_state_machine.validate_direct_update(lead["status"], new_status)
            local = dict(changes)
            if "notes" in local:
                local["notes"] = lead_state_machine.append_notes(lead.get("notes"), local["notes"])
            lead.update(local)

        return await self.with_optimistic_update(
            "Update lead", ["leads"], apply,
            lambda: self.gateway.update_lead(lead_id, {**changes, "override": override}),
            commit=lambda state, saved: state.upsert("leads", saved),
        )

    async def delete_lead(self, lead_id) -> MutationResult:
        def apply(state: AppState):
            self._require(state, "leads", lead_id, "Lead")
            state.remove("leads", lead_id)
            state.lead_history.pop(str(lead_id), None)

        return await self.with_optimistic_update(
            "Delete lead", ["leads", "lead_history"], apply,
            lambda: self.gateway.delete_lead(lead_id),
        )

    async def fetch_lead_history(self, lead_id) -> List[Dict]:
        history = await self.gateway.get_lead_history(lead_id)
        async with self._lock_all(["lead_history"]):
            self.state.lead_history[str(lead_id)] = history
        return history

    # ==================== CATALOG ====================

    async def create_part(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "category": None, "warranty_months": 0, "stock_quantity": 0, **data}

        def apply(state: AppState):
            if int(payload["stock_quantity"]) < 0:
                raise ValidationFailed("Stock cannot be negative")
            state.parts.append(dict(payload))

        return await self.with_optimistic_update(
            "Add part", ["parts"], apply,
            lambda: self.gateway.create_part(payload),
            commit=lambda state, saved: state.upsert("parts", saved),
        )

    async def update_part(self, part_id, changes: Dict) -> MutationResult:
        def apply(state: AppState):
            self._require(state, "parts", part_id, "Part").update(changes)

        return await self.with_optimistic_update(
            "Update part", ["parts"], apply,
            lambda: self.gateway.update_part(part_id, changes),
            commit=lambda state, saved: state.upsert("parts", saved),
        )

    async def create_machine_type(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "description": None, "warranty_months": 12, "price": 0, **data}

        def apply(state: AppState):
            if any(m["model_name"] == payload["model_name"] for m in state.machine_types):
                raise ValidationFailed(f"Machine type {payload['model_name']} already exists")
            state.machine_types.append(dict(payload))

        return await self.with_optimistic_update(
            "Add machine type", ["machine_types"], apply,
            lambda: self.gateway.create_machine_type(payload),
            commit=lambda state, saved: state.upsert("machine_types", saved),
        )

    # ==================== USERS ====================

    async def create_user(self, data: Dict) -> MutationResult:
        payload = {"id": str(uuid.uuid4()), "role": "TECHNICIAN", "status": "ACTIVE", **data}

        def apply(state: AppState):
            local = {k: v for k, v in payload.items() if k != "password"}
            local["email"] = local["email"].strip().lower()
            state.users.append({"phone": None, "address": None, "last_login_at": None, **local})

        return await self.with_optimistic_update(
            "Add user", ["users"], apply,
            lambda: self.gateway.create_user(payload),
            commit=lambda state, saved: state.upsert("users", saved),
        )

    async def update_user(self, user_id, changes: Dict) -> MutationResult:
        def apply(state: AppState):
            user = self._require(state, "users", user_id, "User")
            user.update({k: v for k, v in changes.items() if k != "password"})

        return await self.with_optimistic_update(
            "Update user", ["users"], apply,
            lambda: self.gateway.update_user(user_id, changes),
            commit=lambda state, saved: state.upsert("users", saved),
        )

    async def delete_user(self, user_id) -> MutationResult:
        def apply(state: AppState):
            user = self._require(state, "users", user_id, "User")
            if user["role"] == UserRole.ADMIN.value:
                admins = [u for u in state.users if u["role"] == UserRole.ADMIN.value]
                if len(admins) <= 1:
                    raise BusinessRuleError("Cannot remove the last admin")
            state.remove("users", user_id)

        return await self.with_optimistic_update(
            "Delete user", ["users"], apply,
            lambda: self.gateway.delete_user(user_id),
        )
