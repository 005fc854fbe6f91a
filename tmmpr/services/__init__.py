from .map_session import MapSession, Recovery
from .persistence import PersistenceScheduler
from .save_service import SaveService

__all__ = [
    "MapSession",
    "Recovery",
    "PersistenceScheduler",
    "SaveService",
]
