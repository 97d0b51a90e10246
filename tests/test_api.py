"""HTTP surface: auth, role checks, error bodies and end-to-end flows."""
from datetime import date, timedelta

from tests.conftest import PASSWORD


API = "/api/v1"


async def _create_ticket(client, headers, seed, **overrides):
    payload = {
        "customer_id": str(seed.customer.id),
        "machine_id": str(seed.machine.id),
        "service_type": "REPAIR",
        "description": "Leakage from tap",
        "priority": "HIGH",
    }
    payload.update(overrides)
    response = await client.post(f"{API}/tickets", json=payload, headers=headers.admin)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthAndAuth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"

    async def test_login_and_me(self, client, seed):
        response = await client.post(
            f"{API}/auth/login", json={"email": "manager@gurutech.in", "password": PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "MANAGER"
        assert "password_hash" not in body["user"]

        me = await client.get(
            f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert me.json()["email"] == "manager@gurutech.in"

    async def test_login_failures(self, client, seed):
        wrong = await client.post(
            f"{API}/auth/login", json={"email": "manager@gurutech.in", "password": "nope"}
        )
        assert wrong.status_code == 401
        assert wrong.json()["details"]["reason"] == "invalid_credentials"

        inactive = await client.post(
            f"{API}/auth/login", json={"email": "old@gurutech.in", "password": PASSWORD}
        )
        assert inactive.status_code == 403
        assert inactive.json()["details"]["reason"] == "account_inactive"

    async def test_requests_need_a_token(self, client, seed):
        response = await client.get(f"{API}/tickets")
        assert response.status_code in (401, 403)

        response = await client.get(
            f"{API}/tickets", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401


class TestInit:
    async def test_fetch_all_returns_every_collection(self, client, headers, seed):
        await _create_ticket(client, headers, seed)

        response = await client.get(f"{API}/init", headers=headers.tech)
        assert response.status_code == 200
        data = response.json()

        assert set(data) == {
            "tickets", "customers", "leads", "parts", "machine_types", "users", "amc_expiries",
        }
        assert len(data["tickets"]) == 1
        assert data["customers"][0]["machines"][0]["model_name"] == "GURU-RO-PRO"
        assert len(data["users"]) == 5
        assert all("password_hash" not in u for u in data["users"])


class TestTicketFlow:
    async def test_technician_cannot_create_or_assign(self, client, headers, seed):
        response = await client.post(
            f"{API}/tickets",
            json={
                "customer_id": str(seed.customer.id),
                "service_type": "REPAIR",
                "description": "Noise",
            },
            headers=headers.tech,
        )
        assert response.status_code == 403

    async def test_assign_start_complete(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)
        url = f"{API}/tickets/{ticket['id']}"

        response = await client.post(
            f"{url}/assign",
            json={"technician_id": str(seed.tech.id), "scheduled_date": "2024-06-18T09:00:00"},
            headers=headers.manager,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "ASSIGNED"

        # Only the assignee may work the ticket
        response = await client.post(f"{url}/start", headers=headers.tech2)
        assert response.status_code == 403

        response = await client.post(f"{url}/start", headers=headers.tech)
        assert response.json()["status"] == "IN_PROGRESS"

        response = await client.post(
            f"{url}/complete",
            json={
                "items": [
                    {"part_id": str(seed.sediment.id), "quantity": 3},
                    {"part_id": str(seed.membrane.id), "quantity": 1},
                ],
                "service_charge": 200,
                "payment_mode": "UPI",
                "technician_notes": "Replaced filters",
            },
            headers=headers.tech,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["ticket"]["status"] == "COMPLETED"
        assert body["ticket"]["total_amount"] == 200 + 350 * 3 + 1200
        assert body["ticket"]["completed_date"] == date.today().isoformat()
        assert [w["part_name"] for w in body["stock_warnings"]] == ["Sediment Filter"]

        parts = (await client.get(f"{API}/parts", headers=headers.admin)).json()
        stock = {p["name"]: p["stock_quantity"] for p in parts}
        assert stock == {"RO Membrane 100GPD": 14, "Sediment Filter": 0}

        history = (await client.get(f"{url}/history", headers=headers.admin)).json()
        assert len(history) == 1
        assert history[0]["technician_id"] == str(seed.tech.id)

    async def test_invalid_transition_is_409(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)

        response = await client.post(f"{API}/tickets/{ticket['id']}/start", headers=headers.admin)
        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "InvalidTransitionError"
        assert body["details"]["current_status"] == "PENDING"

    async def test_cancel_needs_reason(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)

        response = await client.post(
            f"{API}/tickets/{ticket['id']}/cancel", json={"reason": " "}, headers=headers.admin
        )
        assert response.status_code == 400
        assert response.json()["type"] == "ValidationFailed"

    async def test_override_is_admin_only(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)
        url = f"{API}/tickets/{ticket['id']}"

        response = await client.patch(
            url, json={"status": "COMPLETED", "override": True}, headers=headers.manager
        )
        assert response.status_code == 403

        response = await client.patch(
            url, json={"status": "COMPLETED", "override": True}, headers=headers.admin
        )
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"

    async def test_patch_cannot_cancel_ticket(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)

        response = await client.patch(
            f"{API}/tickets/{ticket['id']}", json={"status": "CANCELLED"}, headers=headers.admin
        )
        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "ValidationFailed"
        assert body["details"]["operation"] == "cancel"
        assert "/cancel" in body["error"]

        response = await client.get(f"{API}/tickets/{ticket['id']}", headers=headers.admin)
        assert response.json()["status"] == "PENDING"

    async def test_unknown_status_value_rejected(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)
        response = await client.patch(
            f"{API}/tickets/{ticket['id']}", json={"status": "ON_HOLD"}, headers=headers.admin
        )
        assert response.status_code == 422


class TestCustomers:
    async def test_duplicate_phone_is_conflict(self, client, headers, seed):
        response = await client.post(
            f"{API}/customers",
            json={"name": "Someone Else", "phone": seed.customer.phone},
            headers=headers.manager,
        )
        assert response.status_code == 409

    async def test_rename_updates_ticket_names(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)

        response = await client.patch(
            f"{API}/customers/{seed.customer.id}", json={"name": "Anitha K."}, headers=headers.admin
        )
        assert response.status_code == 200

        refreshed = (await client.get(f"{API}/tickets/{ticket['id']}", headers=headers.admin)).json()
        assert refreshed["customer_name"] == "Anitha K."

    async def test_machine_with_expiring_amc_is_listed(self, client, headers, seed):
        expiry = date.today() + timedelta(days=10)
        response = await client.post(
            f"{API}/customers/{seed.customer.id}/machines",
            json={
                "model_name": "GURU-SLIM",
                "installation_date": (expiry - timedelta(days=365)).isoformat(),
                "amc_active": True,
                "amc_expiry": expiry.isoformat(),
            },
            headers=headers.admin,
        )
        assert response.status_code == 201
        machine_id = response.json()["id"]

        expiries = (await client.get(f"{API}/machines/amc-expiries", headers=headers.tech)).json()
        assert [e["machine_id"] for e in expiries] == [machine_id]
        assert expiries[0]["days_remaining"] == 10

        response = await client.post(f"{API}/machines/{machine_id}/amc-renewal", headers=headers.admin)
        assert response.status_code == 201
        assert response.json()["service_type"] == "AMC_SERVICE"

    async def test_delete_machine(self, client, headers, seed):
        ticket = await _create_ticket(client, headers, seed)

        response = await client.delete(f"{API}/machines/{seed.machine.id}", headers=headers.admin)
        assert response.status_code == 204

        refreshed = (await client.get(f"{API}/tickets/{ticket['id']}", headers=headers.admin)).json()
        assert refreshed["machine_id"] is None


class TestLeads:
    async def test_pipeline_to_conversion(self, client, headers, seed):
        response = await client.post(
            f"{API}/leads",
            json={"name": "Dr. Priya", "phone": "9898989898", "source": "Walk-in"},
            headers=headers.manager,
        )
        assert response.status_code == 201
        lead_url = f"{API}/leads/{response.json()['id']}"

        await client.post(f"{lead_url}/follow-up", json={"next_follow_up": "2024-06-25"}, headers=headers.manager)
        await client.post(f"{lead_url}/estimate", json={"estimate_value": 18500}, headers=headers.manager)
        response = await client.post(f"{lead_url}/sold", json={}, headers=headers.manager)
        assert response.json()["status"] == "SOLD"

        response = await client.post(
            f"{lead_url}/convert",
            json={"machine": {"model_name": "GURU-RO-PRO", "installation_date": "2024-07-01"}},
            headers=headers.manager,
        )
        assert response.status_code == 200
        result = response.json()
        assert result["ticket_id"] is not None

        customer = (await client.get(f"{API}/customers/{result['customer_id']}", headers=headers.admin)).json()
        assert customer["name"] == "Dr. Priya"
        assert customer["machines"][0]["warranty_expiry"] == "2025-07-01"

        history = (await client.get(f"{lead_url}/history", headers=headers.tech)).json()
        assert history[0]["action"] == "Converted"

    async def test_technicians_can_read_but_not_write(self, client, headers, seed):
        assert (await client.get(f"{API}/leads", headers=headers.tech)).status_code == 200
        response = await client.post(
            f"{API}/leads", json={"name": "X", "phone": "1"}, headers=headers.tech
        )
        assert response.status_code == 403

    async def test_lost_requires_reason(self, client, headers, seed):
        lead = (await client.post(
            f"{API}/leads", json={"name": "Office B", "phone": "3213214321"}, headers=headers.admin
        )).json()
        response = await client.post(
            f"{API}/leads/{lead['id']}/lost", json={"reason": ""}, headers=headers.admin
        )
        assert response.status_code == 400


class TestUsers:
    async def test_user_admin_is_admin_only(self, client, headers, seed):
        payload = {"name": "New Tech", "email": "new@gurutech.in", "password": PASSWORD}
        assert (await client.post(f"{API}/users", json=payload, headers=headers.manager)).status_code == 403

        response = await client.post(f"{API}/users", json=payload, headers=headers.admin)
        assert response.status_code == 201
        assert response.json()["role"] == "TECHNICIAN"

    async def test_last_admin_cannot_be_deleted(self, client, headers, seed):
        response = await client.delete(f"{API}/users/{seed.admin.id}", headers=headers.admin)
        assert response.status_code == 422
        assert response.json()["error"] == "Cannot remove the last admin"

    async def test_technician_filter(self, client, headers, seed):
        response = await client.get(f"{API}/users", params={"role": "TECHNICIAN"}, headers=headers.manager)
        names = sorted(u["name"] for u in response.json())
        assert names == ["Old Tech", "Ramesh Tech", "Suresh Tech"]
