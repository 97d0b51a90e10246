"""Seed the demo dataset (same records the client falls back to offline)."""
import asyncio
import sys
import uuid
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dateutil.parser import isoparse
from sqlalchemy import select, func

from guru_erp.client.fallback import fallback_dataset
from guru_erp.config import settings
from guru_erp.core.security import get_password_hash
from guru_erp.database import get_db_session, init_db
from guru_erp.models import (
    User, Part, MachineType, Customer, Machine, Ticket, Lead,
)


DEMO_PASSWORD = "Demo@123"


def _date(value):
    return isoparse(value).date() if value else None


def _datetime(value):
    return isoparse(value) if value else None


async def seed():
    """Insert the demo records into an empty database."""
    await init_db()
    data = fallback_dataset()

    async with get_db_session() as db:
        existing = await db.scalar(select(func.count(Customer.id)))
        if existing:
            print(f"Database already has {existing} customers. Nothing to do.")
            return

        print("Creating users...")
        for u in data["users"]:
            email = u["email"]
            if await db.scalar(select(User.id).where(User.email == email)):
                continue
            password = settings.SEED_ADMIN_PASSWORD if u["role"] == "ADMIN" else DEMO_PASSWORD
            db.add(User(
                id=uuid.UUID(u["id"]),
                name=u["name"],
                email=email,
                phone=u["phone"],
                role=u["role"],
                status=u["status"],
                password_hash=get_password_hash(password),
            ))

        print("Creating parts and machine types...")
        for p in data["parts"]:
            db.add(Part(
                id=uuid.UUID(p["id"]),
                name=p["name"],
                category=p["category"],
                price=Decimal(str(p["price"])),
                warranty_months=p["warranty_months"],
                stock_quantity=p["stock_quantity"],
            ))
        for mt in data["machine_types"]:
            db.add(MachineType(
                id=uuid.UUID(mt["id"]),
                model_name=mt["model_name"],
                description=mt["description"],
                warranty_months=mt["warranty_months"],
                price=Decimal(str(mt["price"])),
            ))

        print("Creating customers and machines...")
        for c in data["customers"]:
            db.add(Customer(
                id=uuid.UUID(c["id"]),
                name=c["name"],
                phone=c["phone"],
                address=c["address"],
                customer_type=c["customer_type"],
            ))
            for m in c["machines"]:
                db.add(Machine(
                    id=uuid.UUID(m["id"]),
                    customer_id=uuid.UUID(c["id"]),
                    model_name=m["model_name"],
                    installation_date=_date(m["installation_date"]),
                    warranty_expiry=_date(m["warranty_expiry"]),
                    amc_active=m["amc_active"],
                    amc_expiry=_date(m["amc_expiry"]),
                ))
        await db.flush()

        print("Creating tickets...")
        for t in data["tickets"]:
            db.add(Ticket(
                id=uuid.UUID(t["id"]),
                ticket_number=t["ticket_number"],
                customer_id=uuid.UUID(t["customer_id"]),
                customer_name=t["customer_name"],
                machine_id=uuid.UUID(t["machine_id"]) if t["machine_id"] else None,
                service_type=t["service_type"],
                description=t["description"],
                priority=t["priority"],
                status=t["status"],
                assigned_technician_id=(
                    uuid.UUID(t["assigned_technician_id"]) if t["assigned_technician_id"] else None
                ),
                scheduled_date=_datetime(t["scheduled_date"]),
                completed_date=_date(t["completed_date"]),
                items_used=t["items_used"],
                service_charge=Decimal(str(t["service_charge"])),
                total_amount=Decimal(str(t["total_amount"])),
                payment_mode=t["payment_mode"],
                technician_notes=t["technician_notes"],
                next_follow_up=_date(t["next_follow_up"]),
            ))

        print("Creating leads...")
        for lead in data["leads"]:
            db.add(Lead(
                id=uuid.UUID(lead["id"]),
                name=lead["name"],
                phone=lead["phone"],
                source=lead["source"],
                status=lead["status"],
                notes=lead["notes"],
                next_follow_up=_date(lead["next_follow_up"]),
                estimate_value=(
                    Decimal(str(lead["estimate_value"])) if lead["estimate_value"] is not None else None
                ),
            ))

    print("Demo data seeded.")
    print(f"  Admin: {settings.SEED_ADMIN_EMAIL}")
    print(f"  Other demo users: password {DEMO_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(seed())
