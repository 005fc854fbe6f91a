from .core import CanvasMap, KeyEvent, ModeMachine, Settings
from .services import MapSession, PersistenceScheduler, SaveService

__all__ = ['CanvasMap',
           'KeyEvent',
           'ModeMachine',
           'Settings',
           'MapSession',
           'PersistenceScheduler',
           'SaveService'
           ]
