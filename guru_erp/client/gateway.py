"""
HTTP gateway to the Guru ERP API.

Usage:
    gateway = RemoteGateway("http://localhost:8000/api/v1")
    await gateway.authenticate("admin@gurutech.in", "Admin@123")
    data = await gateway.fetch_all()
    ticket = await gateway.assign_ticket(ticket_id, technician_id, scheduled_date)
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic_core import to_jsonable_python

from guru_erp.config import settings


logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """Any failed call to the API: transport error or non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details or {}
        if status_code:
            super().__init__(f"API error ({status_code}): {message}")
        else:
            super().__init__(message)


class RemoteGateway:
    """Persistence contract implemented over the HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CLIENT_API_URL).rstrip("/")
        self._token: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.CLIENT_REMOTE_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Any] = None,
        params: Optional[Dict] = None,
    ) -> Any:
        """Make an authenticated request and return the decoded JSON body."""
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self._client.request(
                method,
                endpoint,
                json=to_jsonable_python(data) if data is not None else None,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request {method} {endpoint} failed: {e}")
            raise RemoteError(f"Could not reach server: {e}") from e

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            message = error_data.get("error") or error_data.get("detail") or response.text
            logger.error(f"API error: {response.status_code} - {message}")
            raise RemoteError(
                message=str(message),
                status_code=response.status_code,
                error_type=error_data.get("type"),
                details=error_data.get("details"),
            )

        return response.json() if response.content else None

    # ==================== AUTH & BOOTSTRAP ====================

    async def authenticate(self, email: str, password: str) -> Dict:
        """Log in and keep the bearer token for later calls. Returns the user."""
        data = await self._request("POST", "/auth/login", {"email": email, "password": password})
        self._token = data["access_token"]
        return data["user"]

    async def fetch_all(self) -> Dict[str, List[Dict]]:
        return await self._request("GET", "/init")

    # ==================== CUSTOMERS & MACHINES ====================

    async def create_customer(self, data: Dict) -> Dict:
        return await self._request("POST", "/customers", data)

    async def update_customer(self, customer_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/customers/{customer_id}", data)

    async def add_machine(self, customer_id, data: Dict) -> Dict:
        return await self._request("POST", f"/customers/{customer_id}/machines", data)

    async def update_machine(self, machine_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/machines/{machine_id}", data)

    async def delete_machine(self, machine_id) -> None:
        await self._request("DELETE", f"/machines/{machine_id}")

    async def get_amc_expiries(self) -> List[Dict]:
        return await self._request("GET", "/machines/amc-expiries")

    async def create_amc_renewal_ticket(self, machine_id) -> Dict:
        return await self._request("POST", f"/machines/{machine_id}/amc-renewal")

    # ==================== TICKETS ====================

    async def create_ticket(self, data: Dict) -> Dict:
        return await self._request("POST", "/tickets", data)

    async def update_ticket(self, ticket_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/tickets/{ticket_id}", data)

    async def assign_ticket(self, ticket_id, technician_id, scheduled_date=None) -> Dict:
        return await self._request(
            "POST",
            f"/tickets/{ticket_id}/assign",
            {"technician_id": technician_id, "scheduled_date": scheduled_date},
        )

    async def start_ticket(self, ticket_id) -> Dict:
        return await self._request("POST", f"/tickets/{ticket_id}/start")

    async def complete_ticket(self, ticket_id, data: Dict) -> Dict:
        return await self._request("POST", f"/tickets/{ticket_id}/complete", data)

    async def cancel_ticket(self, ticket_id, reason: str) -> Dict:
        return await self._request("POST", f"/tickets/{ticket_id}/cancel", {"reason": reason})

    async def get_ticket_history(self, ticket_id) -> List[Dict]:
        return await self._request("GET", f"/tickets/{ticket_id}/history")

    # ==================== LEADS ====================

    async def create_lead(self, data: Dict) -> Dict:
        return await self._request("POST", "/leads", data)

    async def update_lead(self, lead_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/leads/{lead_id}", data)

    async def delete_lead(self, lead_id) -> None:
        await self._request("DELETE", f"/leads/{lead_id}")

    async def schedule_follow_up(self, lead_id, next_follow_up, notes=None) -> Dict:
        return await self._request(
            "POST", f"/leads/{lead_id}/follow-up",
            {"next_follow_up": next_follow_up, "notes": notes},
        )

    async def send_estimate(self, lead_id, estimate_value, notes=None) -> Dict:
        return await self._request(
            "POST", f"/leads/{lead_id}/estimate",
            {"estimate_value": estimate_value, "notes": notes},
        )

    async def mark_sold(self, lead_id, notes=None) -> Dict:
        return await self._request("POST", f"/leads/{lead_id}/sold", {"notes": notes})

    async def mark_lost(self, lead_id, reason: str, notes=None) -> Dict:
        return await self._request(
            "POST", f"/leads/{lead_id}/lost", {"reason": reason, "notes": notes}
        )

    async def convert_lead(self, lead_id, details: Optional[Dict] = None) -> Dict:
        return await self._request("POST", f"/leads/{lead_id}/convert", details or {})

    async def get_lead_history(self, lead_id) -> List[Dict]:
        return await self._request("GET", f"/leads/{lead_id}/history")

    # ==================== CATALOG ====================

    async def create_part(self, data: Dict) -> Dict:
        return await self._request("POST", "/parts", data)

    async def update_part(self, part_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/parts/{part_id}", data)

    async def create_machine_type(self, data: Dict) -> Dict:
        return await self._request("POST", "/machine-types", data)

    # ==================== USERS ====================

    async def create_user(self, data: Dict) -> Dict:
        return await self._request("POST", "/users", data)

    async def update_user(self, user_id, data: Dict) -> Dict:
        return await self._request("PATCH", f"/users/{user_id}", data)

    async def delete_user(self, user_id) -> None:
        await self._request("DELETE", f"/users/{user_id}")
