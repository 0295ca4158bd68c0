"""Master/worker HTTP interface."""

from .master_api import MasterAPI, MasterServer, SettleRequest
from .master_client import MasterClient

__all__ = [
    "MasterAPI",
    "MasterServer",
    "SettleRequest",
    "MasterClient",
]
