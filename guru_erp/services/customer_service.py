"""Customer Service - customer registry, machines, AMC tracking and machine types."""
import logging
import uuid
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from guru_erp.config import settings
from guru_erp.core.exceptions import ConflictError, NotFoundError
from guru_erp.models.catalog import MachineType
from guru_erp.models.customer import Customer, Machine
from guru_erp.models.ticket import Ticket


logger = logging.getLogger(__name__)


class CustomerService:
    """Service for customer and machine operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== CUSTOMER METHODS ====================

    async def list_customers(self) -> List[Customer]:
        result = await self.db.execute(
            select(Customer)
            .options(selectinload(Customer.machines))
            .order_by(Customer.name)
        )
        return list(result.scalars().all())

    async def get_customer(self, customer_id: uuid.UUID) -> Customer:
        """Get customer with machines. Always re-reads the machine list."""
        result = await self.db.execute(
            select(Customer)
            .options(selectinload(Customer.machines))
            .where(Customer.id == customer_id)
            .execution_options(populate_existing=True)
        )
        customer = result.scalar_one_or_none()
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        result = await self.db.execute(
            select(Customer).where(Customer.phone == phone.strip())
        )
        return result.scalar_one_or_none()

    async def create_customer(self, data: dict, commit: bool = True) -> Customer:
        """
        Create a customer, optionally with machines.

        With ``commit=False`` the customer is only flushed, so lead conversion
        can bundle it with its own writes.
        """
        machines_data = data.pop("machines", None) or []
        if data.get("id") is None:
            data.pop("id", None)
        data["phone"] = data["phone"].strip()

        if await self.get_customer_by_phone(data["phone"]):
            raise ConflictError(
                f"Customer with phone {data['phone']} already exists",
                {"phone": data["phone"]},
            )

        customer = Customer(**data)
        self.db.add(customer)
        await self._flush_or_conflict(f"Customer with phone {data['phone']} already exists")

        for machine_data in machines_data:
            await self._build_machine(customer.id, machine_data)

        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        logger.info("Customer created: %s (%s)", customer.name, customer.phone)
        return await self.get_customer(customer.id)

    async def update_customer(self, customer_id: uuid.UUID, data: dict) -> Customer:
        """
        Update customer fields. A rename also rewrites the cached
        customer_name on every ticket of this customer.
        """
        customer = await self.get_customer(customer_id)

        if data.get("phone"):
            data["phone"] = data["phone"].strip()
            if data["phone"] != customer.phone:
                existing = await self.get_customer_by_phone(data["phone"])
                if existing and existing.id != customer.id:
                    raise ConflictError(
                        f"Customer with phone {data['phone']} already exists",
                        {"phone": data["phone"]},
                    )

        renamed = "name" in data and data["name"] != customer.name

        for key, value in data.items():
            if hasattr(customer, key) and key != "machines":
                setattr(customer, key, value)

        if renamed:
            await self.db.execute(
                update(Ticket)
                .where(Ticket.customer_id == customer.id)
                .values(customer_name=customer.name)
            )
            logger.info("Customer %s renamed, ticket names refreshed", customer.id)

        await self._flush_or_conflict("Customer phone already in use")
        await self.db.commit()
        return await self.get_customer(customer.id)

    # ==================== MACHINE METHODS ====================

    async def get_machine(self, machine_id: uuid.UUID) -> Machine:
        machine = await self.db.get(Machine, machine_id)
        if not machine:
            raise NotFoundError("Machine", machine_id)
        return machine

    async def add_machine(self, customer_id: uuid.UUID, data: dict, commit: bool = True) -> Machine:
        """Register a machine for an existing customer."""
        await self.get_customer(customer_id)
        machine = await self._build_machine(customer_id, data)
        if commit:
            await self.db.commit()
            await self.db.refresh(machine)
        else:
            await self.db.flush()
        logger.info("Machine %s registered for customer %s", machine.model_name, customer_id)
        return machine

    async def update_machine(self, machine_id: uuid.UUID, data: dict) -> Machine:
        machine = await self.get_machine(machine_id)
        for key, value in data.items():
            if hasattr(machine, key):
                setattr(machine, key, value)

        if machine.warranty_expiry is None:
            machine.warranty_expiry = await self._derive_warranty_expiry(
                machine.installation_date, machine.machine_type_id, machine.model_name
            )
        if not machine.amc_active:
            machine.amc_expiry = None
        elif machine.amc_expiry is None:
            machine.amc_expiry = machine.installation_date + relativedelta(
                months=settings.DEFAULT_AMC_MONTHS
            )

        await self.db.commit()
        await self.db.refresh(machine)
        return machine

    async def delete_machine(self, machine_id: uuid.UUID) -> None:
        """Delete a machine. Tickets keep their history but lose the reference."""
        machine = await self.get_machine(machine_id)
        await self.db.execute(
            update(Ticket).where(Ticket.machine_id == machine.id).values(machine_id=None)
        )
        await self.db.delete(machine)
        await self.db.commit()
        logger.info("Machine %s deleted", machine_id)

    async def get_amc_expiries(self, today: Optional[date] = None) -> List[dict]:
        """
        Machines with an active AMC expiring within the renewal window.

        days_remaining is computed at read time, so the list is never stale.
        """
        today = today or date.today()
        window_end = today + relativedelta(days=settings.AMC_EXPIRY_WINDOW_DAYS)

        result = await self.db.execute(
            select(Machine, Customer)
            .join(Customer, Machine.customer_id == Customer.id)
            .where(
                Machine.amc_active.is_(True),
                Machine.amc_expiry.is_not(None),
                Machine.amc_expiry >= today,
                Machine.amc_expiry <= window_end,
            )
            .order_by(Machine.amc_expiry)
        )
        return [
            {
                "machine_id": machine.id,
                "customer_id": customer.id,
                "customer_name": customer.name,
                "customer_phone": customer.phone,
                "model_name": machine.model_name,
                "amc_expiry": machine.amc_expiry,
                "days_remaining": (machine.amc_expiry - today).days,
            }
            for machine, customer in result.all()
        ]

    # ==================== MACHINE TYPE METHODS ====================

    async def list_machine_types(self) -> List[MachineType]:
        result = await self.db.execute(select(MachineType).order_by(MachineType.model_name))
        return list(result.scalars().all())

    async def create_machine_type(self, data: dict) -> MachineType:
        if data.get("id") is None:
            data.pop("id", None)
        existing = await self.db.scalar(
            select(MachineType).where(MachineType.model_name == data["model_name"])
        )
        if existing:
            raise ConflictError(
                f"Machine type {data['model_name']} already exists",
                {"model_name": data["model_name"]},
            )
        machine_type = MachineType(**data)
        self.db.add(machine_type)
        await self._flush_or_conflict(f"Machine type {data['model_name']} already exists")
        await self.db.commit()
        await self.db.refresh(machine_type)
        return machine_type

    # ==================== HELPERS ====================

    async def _build_machine(self, customer_id: uuid.UUID, data: dict) -> Machine:
        data = dict(data)
        if data.get("id") is None:
            data.pop("id", None)

        if data.get("warranty_expiry") is None:
            data["warranty_expiry"] = await self._derive_warranty_expiry(
                data["installation_date"], data.get("machine_type_id"), data["model_name"]
            )

        if not data.get("amc_active"):
            data["amc_active"] = False
            data["amc_expiry"] = None
        elif data.get("amc_expiry") is None:
            data["amc_expiry"] = data["installation_date"] + relativedelta(
                months=settings.DEFAULT_AMC_MONTHS
            )

        machine = Machine(customer_id=customer_id, **data)
        self.db.add(machine)
        await self.db.flush()
        return machine

    async def _derive_warranty_expiry(
        self,
        installation_date: date,
        machine_type_id: Optional[uuid.UUID],
        model_name: Optional[str],
    ) -> Optional[date]:
        """installation_date + machine type warranty, looked up by id or model name."""
        machine_type = None
        if machine_type_id:
            machine_type = await self.db.get(MachineType, machine_type_id)
        elif model_name:
            machine_type = await self.db.scalar(
                select(MachineType).where(MachineType.model_name == model_name)
            )
        if not machine_type or installation_date is None:
            return None
        return installation_date + relativedelta(months=machine_type.warranty_months)

    async def _flush_or_conflict(self, message: str) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(message)
