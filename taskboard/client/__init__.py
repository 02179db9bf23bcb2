from .api import ApiError, BoardApiClient
from .reconciler import Reconciler, SyncOutcome, SyncResult
from .store import BoardStore, NotificationCenter, StoreConfig

__all__ = [
    "ApiError",
    "BoardApiClient",
    "BoardStore",
    "NotificationCenter",
    "Reconciler",
    "StoreConfig",
    "SyncOutcome",
    "SyncResult",
]
