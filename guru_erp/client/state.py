"""Client-side application state."""
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


@dataclass
class AppState:
    """
    Local copies of every server collection, owned by one ClientCoordinator.

    Entities are kept as the JSON dicts the API returns. History is cached
    per entity id, most recent first.
    """
    tickets: List[Dict] = field(default_factory=list)
    customers: List[Dict] = field(default_factory=list)
    leads: List[Dict] = field(default_factory=list)
    parts: List[Dict] = field(default_factory=list)
    machine_types: List[Dict] = field(default_factory=list)
    users: List[Dict] = field(default_factory=list)
    amc_expiries: List[Dict] = field(default_factory=list)
    ticket_history: Dict[str, List[Dict]] = field(default_factory=dict)
    lead_history: Dict[str, List[Dict]] = field(default_factory=dict)
    current_user: Optional[Dict] = None
    is_offline: bool = False

    # Fixed order; locks are always taken in this order
    COLLECTIONS = (
        "customers",
        "tickets",
        "leads",
        "parts",
        "machine_types",
        "users",
        "amc_expiries",
        "ticket_history",
        "lead_history",
    )
    BULK_COLLECTIONS = COLLECTIONS[:7]

    def snapshot(self, names: Iterable[str]) -> Dict[str, object]:
        return {name: deepcopy(getattr(self, name)) for name in names}

    def restore(self, snapshot: Dict[str, object]) -> None:
        for name, value in snapshot.items():
            setattr(self, name, value)

    def replace_all(self, data: Dict[str, List[Dict]]) -> None:
        """Swap in a full dataset. Cached histories are dropped."""
        for name in self.BULK_COLLECTIONS:
            setattr(self, name, list(data.get(name) or []))
        self.ticket_history = {}
        self.lead_history = {}

    def find(self, collection: str, entity_id) -> Optional[Dict]:
        entity_id = str(entity_id)
        for item in getattr(self, collection):
            if str(item.get("id")) == entity_id:
                return item
        return None

    def find_machine(self, machine_id) -> Optional[Dict]:
        machine_id = str(machine_id)
        for customer in self.customers:
            for machine in customer.get("machines", []):
                if str(machine.get("id")) == machine_id:
                    return machine
        return None

    def upsert(self, collection: str, entity: Dict) -> None:
        """Replace the entity with the same id, or append it."""
        items = getattr(self, collection)
        for index, item in enumerate(items):
            if str(item.get("id")) == str(entity.get("id")):
                items[index] = entity
                return
        items.append(entity)

    def remove(self, collection: str, entity_id) -> None:
        setattr(
            self,
            collection,
            [item for item in getattr(self, collection) if str(item.get("id")) != str(entity_id)],
        )
