"""
Demo dataset loaded when the server cannot be reached at start-up.

The same records are written to the database by scripts/seed_demo_data.py.
Ids are stable uuid5 values so both copies line up.
"""
import uuid
from typing import Dict, List


DEMO_NAMESPACE = uuid.UUID("6f1b6a52-4c1e-4d55-9a8e-3c2f1d0b7a10")


def demo_id(key: str) -> str:
    return str(uuid.uuid5(DEMO_NAMESPACE, key))


def _machine(key, customer_key, model_name, installed, warranty, amc_expiry=None):
    return {
        "id": demo_id(key),
        "customer_id": demo_id(customer_key),
        "machine_type_id": None,
        "model_name": model_name,
        "installation_date": installed,
        "warranty_expiry": warranty,
        "amc_active": amc_expiry is not None,
        "amc_expiry": amc_expiry,
    }


def _ticket(key, number, customer_key, customer_name, machine_key, service_type,
            description, priority, status, scheduled, technician_key=None, **closure):
    ticket = {
        "id": demo_id(key),
        "ticket_number": number,
        "customer_id": demo_id(customer_key),
        "customer_name": customer_name,
        "machine_id": demo_id(machine_key) if machine_key else None,
        "service_type": service_type,
        "description": description,
        "priority": priority,
        "status": status,
        "assigned_technician_id": demo_id(technician_key) if technician_key else None,
        "scheduled_date": scheduled,
        "started_at": None,
        "completed_date": None,
        "items_used": [],
        "service_charge": 0.0,
        "total_amount": 0.0,
        "payment_mode": None,
        "technician_notes": None,
        "next_follow_up": None,
        "cancellation_reason": None,
        "created_at": scheduled,
        "updated_at": scheduled,
    }
    ticket.update(closure)
    return ticket


def fallback_dataset() -> Dict[str, List[Dict]]:
    """Return a fresh copy of the demo dataset."""
    users = [
        {"id": demo_id("u1"), "name": "Admin User", "email": "admin@gurutech.in", "role": "ADMIN",
         "phone": "9000000001", "address": None, "status": "ACTIVE", "last_login_at": None},
        {"id": demo_id("u2"), "name": "Ramesh Tech", "email": "ramesh@gurutech.in", "role": "TECHNICIAN",
         "phone": "9000000002", "address": None, "status": "ACTIVE", "last_login_at": None},
        {"id": demo_id("u3"), "name": "Suresh Tech", "email": "suresh@gurutech.in", "role": "TECHNICIAN",
         "phone": "9000000003", "address": None, "status": "ACTIVE", "last_login_at": None},
        {"id": demo_id("u4"), "name": "Manager Boss", "email": "manager@gurutech.in", "role": "MANAGER",
         "phone": "9000000004", "address": None, "status": "ACTIVE", "last_login_at": None},
    ]

    parts = [
        {"id": demo_id("p1"), "name": "RO Membrane 100GPD", "category": "Filters",
         "price": 1200.0, "warranty_months": 12, "stock_quantity": 15},
        {"id": demo_id("p2"), "name": "Sediment Filter", "category": "Filters",
         "price": 350.0, "warranty_months": 0, "stock_quantity": 50},
        {"id": demo_id("p3"), "name": "Carbon Filter", "category": "Filters",
         "price": 400.0, "warranty_months": 0, "stock_quantity": 40},
        {"id": demo_id("p4"), "name": "Booster Pump", "category": "Motors",
         "price": 2500.0, "warranty_months": 12, "stock_quantity": 5},
        {"id": demo_id("p5"), "name": "UV Lamp", "category": "Electronics",
         "price": 800.0, "warranty_months": 6, "stock_quantity": 10},
    ]

    customers = [
        {"id": demo_id("c1"), "name": "Anitha Kumar", "phone": "9876543210",
         "address": "12, North St, Madurai", "customer_type": "GURU_INSTALLED",
         "created_at": "2023-05-15T00:00:00+00:00",
         "machines": [_machine("m1", "c1", "GURU-RO-PRO", "2023-05-15", "2024-05-15", "2025-05-15")]},
        {"id": demo_id("c2"), "name": "Hotel Saravana", "phone": "9988776655",
         "address": "45, Bypass Road, Madurai", "customer_type": "SERVICE_ONLY",
         "created_at": "2022-01-10T00:00:00+00:00",
         "machines": [_machine("m2", "c2", "KENT-PEARL", "2022-01-10", "2023-01-10")]},
        {"id": demo_id("c3"), "name": "Ravi Verma", "phone": "9123456780",
         "address": "88, Lake View, Madurai", "customer_type": "GURU_INSTALLED",
         "created_at": "2024-01-20T00:00:00+00:00",
         "machines": [_machine("m3", "c3", "GURU-SLIM", "2024-01-20", "2025-01-20")]},
    ]

    tickets = [
        _ticket("t1", "TKT-20240620-0001", "c1", "Anitha Kumar", "m1", "AMC_SERVICE",
                "Quarterly routine service", "MEDIUM", "PENDING", "2024-06-20T10:00:00"),
        _ticket("t2", "TKT-20240618-0001", "c2", "Hotel Saravana", "m2", "REPAIR",
                "Motor making loud noise", "URGENT", "ASSIGNED", "2024-06-18T09:00:00",
                technician_key="u2"),
        _ticket("t3", "TKT-20240610-0001", "c1", "Anitha Kumar", "m1", "REPAIR",
                "Leakage from tap", "HIGH", "COMPLETED", "2024-06-10T11:00:00",
                technician_key="u3",
                completed_date="2024-06-10",
                items_used=[{"part_id": demo_id("p2"), "quantity": 1, "cost": 350.0}],
                service_charge=200.0,
                total_amount=550.0,
                payment_mode="CASH",
                technician_notes="Replaced washer and filter",
                next_follow_up="2024-09-10"),
    ]

    leads = [
        {"id": demo_id("l1"), "name": "New Resident A", "phone": "1231231234", "email": None,
         "address": None, "source": "Referral", "status": "NEW", "notes": "Interested in RO",
         "next_follow_up": None, "estimate_value": None, "loss_reason": None,
         "converted_customer_id": None,
         "created_at": "2024-06-15T00:00:00+00:00", "updated_at": "2024-06-15T00:00:00+00:00"},
        {"id": demo_id("l2"), "name": "Office B", "phone": "3213214321", "email": None,
         "address": None, "source": "Web", "status": "ESTIMATE_SENT",
         "notes": "Sent quote for commercial plant",
         "next_follow_up": None, "estimate_value": 15000.0, "loss_reason": None,
         "converted_customer_id": None,
         "created_at": "2024-06-10T00:00:00+00:00", "updated_at": "2024-06-10T00:00:00+00:00"},
        {"id": demo_id("l3"), "name": "Dr. Priya", "phone": "9898989898", "email": None,
         "address": None, "source": "Walk-in", "status": "FOLLOW_UP", "notes": "Call back next week",
         "next_follow_up": "2024-06-25", "estimate_value": None, "loss_reason": None,
         "converted_customer_id": None,
         "created_at": "2024-06-12T00:00:00+00:00", "updated_at": "2024-06-12T00:00:00+00:00"},
    ]

    machine_types = [
        {"id": demo_id("mt1"), "model_name": "GURU-RO-PRO", "description": "RO + UV + TDS controller",
         "warranty_months": 12, "price": 18500.0},
        {"id": demo_id("mt2"), "model_name": "GURU-SLIM", "description": "Compact RO for small kitchens",
         "warranty_months": 12, "price": 12500.0},
    ]

    return {
        "users": users,
        "parts": parts,
        "customers": customers,
        "tickets": tickets,
        "leads": leads,
        "machine_types": machine_types,
        "amc_expiries": [],
    }
