# API endpoint routers
from . import boondmanager, sync_status

__all__ = ["boondmanager", "sync_status"]
