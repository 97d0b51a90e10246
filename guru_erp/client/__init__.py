"""Client sync layer: local state kept in step with the API."""
from guru_erp.client.coordinator import ClientCoordinator, MutationResult
from guru_erp.client.gateway import RemoteError, RemoteGateway
from guru_erp.client.notifications import LoggingNotifier, Notifier
from guru_erp.client.state import AppState

__all__ = [
    "AppState",
    "ClientCoordinator",
    "LoggingNotifier",
    "MutationResult",
    "Notifier",
    "RemoteError",
    "RemoteGateway",
]
