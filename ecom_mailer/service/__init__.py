"""Long-running service: startup probe plus heartbeat."""

from .heartbeat import HeartbeatScheduler
from .lifecycle import run_service
