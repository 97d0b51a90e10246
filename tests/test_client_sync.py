"""ClientCoordinator: optimistic updates, rollback, locking and offline mode."""
import asyncio
from copy import deepcopy

import pytest

from guru_erp.client import AppState, ClientCoordinator, RemoteError
from guru_erp.client.fallback import demo_id, fallback_dataset
from guru_erp.core.exceptions import BusinessRuleError, InvalidTransitionError, ValidationFailed


class FakeGateway:
    """
    Stands in for RemoteGateway. Every mutation records its name, waits
    ``delay`` seconds, then raises ``fail_with`` or returns ``responses[name]``.
    """

    def __init__(self, data=None):
        self.data = data if data is not None else fallback_dataset()
        self.responses = {}
        self.calls = []
        self.fail_with = None
        self.fetch_error = None
        self.delay = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def authenticate(self, email, password):
        self.calls.append("authenticate")
        return next(u for u in self.data["users"] if u["email"] == email)

    async def fetch_all(self):
        self.calls.append("fetch_all")
        if self.fetch_error:
            raise self.fetch_error
        return deepcopy(self.data)

    async def _respond(self, name):
        self.calls.append(name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_with:
                raise self.fail_with
            return deepcopy(self.responses.get(name))
        finally:
            self.in_flight -= 1

    def __getattr__(self, name):
        async def call(*args, **kwargs):
            return await self._respond(name)
        return call


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def notify(self, message, level="info"):
        self.messages.append((level, message))


T1, T2, T3 = demo_id("t1"), demo_id("t2"), demo_id("t3")
C1 = demo_id("c1")
U1, U2 = demo_id("u1"), demo_id("u2")
P4 = demo_id("p4")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def coordinator(gateway, notifier):
    coordinator = ClientCoordinator(gateway, notifier=notifier, remote_timeout=0.5)
    await coordinator.load()
    notifier.messages.clear()
    gateway.calls.clear()
    return coordinator


class TestLoading:
    async def test_login_loads_everything(self, gateway, notifier):
        coordinator = ClientCoordinator(gateway, notifier=notifier)
        user = await coordinator.login("admin@gurutech.in", "Admin@123")

        assert user["role"] == "ADMIN"
        assert coordinator.state.current_user == user
        assert gateway.calls == ["authenticate", "fetch_all"]
        assert len(coordinator.state.tickets) == 3
        assert coordinator.state.is_offline is False

    async def test_unreachable_server_falls_back_to_demo_data(self, gateway, notifier):
        gateway.fetch_error = RemoteError("Could not reach server")
        coordinator = ClientCoordinator(gateway, notifier=notifier)

        await coordinator.load()

        assert coordinator.state.is_offline is True
        assert len(coordinator.state.customers) == 3
        assert [level for level, _ in notifier.messages] == ["warning"]

    async def test_failed_reload_keeps_state(self, coordinator, gateway):
        before = deepcopy(coordinator.state.tickets)
        gateway.fetch_error = RemoteError("down")

        assert await coordinator.reload() is False
        assert coordinator.state.tickets == before


class TestOptimisticAssign:
    async def test_remote_failure_restores_state(self, coordinator, gateway, notifier):
        before = deepcopy(coordinator.state.tickets)
        gateway.fail_with = RemoteError("Tickets can only be assigned to active technicians", 422)

        result = await coordinator.assign_ticket(T1, U2, "2024-06-20T10:00:00")

        assert result.success is False
        assert isinstance(result.error, RemoteError)
        assert coordinator.state.tickets == before
        assert coordinator.state.ticket_history == {}
        assert notifier.messages == [
            ("error", "Assign technician failed: Tickets can only be assigned to active technicians"),
        ]

    async def test_success_merges_server_copy(self, coordinator, gateway, notifier):
        server_ticket = deepcopy(coordinator.state.find("tickets", T1))
        server_ticket.update(
            status="ASSIGNED", assigned_technician_id=U2, ticket_number="TKT-20240620-0001",
            updated_at="2024-06-20T08:00:00+00:00",
        )
        gateway.responses["assign_ticket"] = server_ticket

        result = await coordinator.assign_ticket(T1, U2)

        assert result.success is True
        assert coordinator.state.find("tickets", T1) == server_ticket
        history = coordinator.state.ticket_history[T1]
        assert len(history) == 1
        assert history[0]["technician_id"] == U2
        assert notifier.messages == [("success", "Assign technician succeeded")]

    async def test_timeout_rolls_back(self, coordinator, gateway, notifier):
        coordinator.remote_timeout = 0.05
        gateway.delay = 0.5

        result = await coordinator.assign_ticket(T1, U2)

        assert result.success is False
        assert isinstance(result.error, asyncio.TimeoutError)
        assert coordinator.state.find("tickets", T1)["status"] == "PENDING"
        assert len(notifier.messages) == 1
        assert "did not respond" in notifier.messages[0][1]

    async def test_invalid_transition_never_reaches_server(self, coordinator, gateway, notifier):
        result = await coordinator.assign_ticket(T3, U2)

        assert result.success is False
        assert isinstance(result.error, InvalidTransitionError)
        assert gateway.calls == []
        assert coordinator.state.find("tickets", T3)["status"] == "COMPLETED"
        assert len(notifier.messages) == 1

    async def test_only_technicians_can_be_assigned(self, coordinator, gateway):
        result = await coordinator.assign_ticket(T1, U1)

        assert isinstance(result.error, BusinessRuleError)
        assert gateway.calls == []

    async def test_unexpected_errors_restore_and_propagate(self, coordinator, gateway, notifier):
        gateway.fail_with = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await coordinator.assign_ticket(T1, U2)

        assert coordinator.state.find("tickets", T1)["status"] == "PENDING"
        assert coordinator.state.ticket_history == {}
        assert notifier.messages == []


class TestCompletion:
    @pytest.fixture
    async def in_progress(self, coordinator):
        coordinator.state.find("tickets", T2)["status"] = "IN_PROGRESS"
        return coordinator

    async def test_failure_restores_stock_and_ticket(self, in_progress, gateway):
        gateway.fail_with = RemoteError("Could not reach server")

        result = await in_progress.complete_ticket(T2, [{"part_id": P4, "quantity": 7}], service_charge=300)

        assert result.success is False
        assert in_progress.state.find("parts", P4)["stock_quantity"] == 5
        assert in_progress.state.find("tickets", T2)["status"] == "IN_PROGRESS"

    async def test_local_closure_values(self, in_progress, gateway):
        captured = {}
        real_respond = gateway._respond

        async def snapshot_then_fail(name):
            captured["ticket"] = deepcopy(in_progress.state.find("tickets", T2))
            captured["stock"] = in_progress.state.find("parts", P4)["stock_quantity"]
            gateway.fail_with = RemoteError("offline")
            return await real_respond(name)

        gateway._respond = snapshot_then_fail
        await in_progress.complete_ticket(T2, [{"part_id": P4, "quantity": 7}], service_charge=300)

        assert captured["stock"] == 0
        assert captured["ticket"]["status"] == "COMPLETED"
        assert captured["ticket"]["total_amount"] == 300 + 2500 * 7
        assert captured["ticket"]["items_used"] == [{"part_id": P4, "quantity": 7, "cost": 2500.0}]

    async def test_success_reloads_from_server(self, in_progress, gateway, notifier):
        server = deepcopy(gateway.data)
        next(p for p in server["parts"] if p["id"] == P4)["stock_quantity"] = 1
        gateway.data = server

        result = await in_progress.complete_ticket(T2, [{"part_id": P4, "quantity": 4}])

        assert result.success is True
        assert gateway.calls == ["complete_ticket", "fetch_all"]
        assert in_progress.state.find("parts", P4)["stock_quantity"] == 1
        assert notifier.messages == [("success", "Complete ticket succeeded")]


class TestLocalRules:
    async def test_cancel_needs_reason(self, coordinator, gateway):
        result = await coordinator.cancel_ticket(T1, "   ")

        assert isinstance(result.error, ValidationFailed)
        assert gateway.calls == []

    async def test_last_admin_is_protected(self, coordinator, gateway):
        result = await coordinator.delete_user(U1)

        assert isinstance(result.error, BusinessRuleError)
        assert gateway.calls == []
        assert coordinator.state.find("users", U1) is not None

    async def test_rename_updates_ticket_names(self, coordinator, gateway):
        customer = deepcopy(coordinator.state.find("customers", C1))
        customer["name"] = "Anitha K."
        gateway.responses["update_customer"] = customer

        result = await coordinator.update_customer(C1, {"name": "Anitha K."})

        assert result.success is True
        names = {t["id"]: t["customer_name"] for t in coordinator.state.tickets}
        assert names[T1] == names[T3] == "Anitha K."
        assert names[T2] == "Hotel Saravana"

    async def test_generic_update_cannot_complete_ticket(self, coordinator, gateway, notifier):
        coordinator.state.find("tickets", T2)["status"] = "IN_PROGRESS"
        before = deepcopy(coordinator.state.tickets)

        result = await coordinator.update_ticket(T2, {"status": "COMPLETED"})

        assert isinstance(result.error, ValidationFailed)
        assert gateway.calls == []
        assert coordinator.state.tickets == before
        assert coordinator.state.find("parts", P4)["stock_quantity"] == 5
        assert [level for level, _ in notifier.messages] == ["error"]

    async def test_generic_update_cannot_convert_lead(self, coordinator, gateway):
        lead_id = demo_id("l2")
        coordinator.state.find("leads", lead_id)["status"] = "SOLD"

        result = await coordinator.update_lead(lead_id, {"status": "CONVERTED"})

        assert isinstance(result.error, ValidationFailed)
        assert gateway.calls == []
        assert coordinator.state.find("leads", lead_id)["status"] == "SOLD"
        assert len(coordinator.state.customers) == 3

    async def test_lost_lead_needs_reason(self, coordinator, gateway):
        result = await coordinator.mark_lost(demo_id("l2"), "")

        assert isinstance(result.error, ValidationFailed)
        assert coordinator.state.find("leads", demo_id("l2"))["status"] == "ESTIMATE_SENT"


class TestLocking:
    async def test_overlapping_collections_are_serialised(self, coordinator, gateway):
        gateway.delay = 0.05
        gateway.responses["update_customer"] = deepcopy(coordinator.state.find("customers", C1))

        results = await asyncio.gather(
            coordinator.update_customer(C1, {"name": "Anitha K."}),
            coordinator.assign_ticket(T1, U2),
        )

        assert all(r.success for r in results)
        assert gateway.max_in_flight == 1

    async def test_disjoint_collections_run_concurrently(self, coordinator, gateway):
        gateway.delay = 0.05

        results = await asyncio.gather(
            coordinator.create_part({"name": "Float Valve", "price": 150}),
            coordinator.create_lead({"name": "Walk-in C", "phone": "7777777777"}),
        )

        assert all(r.success for r in results)
        assert gateway.max_in_flight == 2

    def test_unknown_collection_is_rejected(self, gateway):
        coordinator = ClientCoordinator(gateway, state=AppState())
        with pytest.raises(ValueError):
            coordinator._ordered(["tickets", "invoices"])
