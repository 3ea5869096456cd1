"""
Collector runtime: store, broadcaster, scheduling and stream endpoint.
"""

from .broadcaster import Broadcaster, encode_event
from .collector import Collector
from .config import CollectorSettings
from .scheduler import PeriodicTask
from .store import MergeResult, PairStore
from .stream_server import StreamServer

__all__ = [
    "Broadcaster",
    "encode_event",
    "Collector",
    "CollectorSettings",
    "PeriodicTask",
    "MergeResult",
    "PairStore",
    "StreamServer",
]
