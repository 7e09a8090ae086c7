"""Priority dispatch queue and rate-limited drain loop."""

from .dispatcher import RateLimitedDispatcher
from .queue import BoundedPriorityQueue, EnqueueResult

__all__ = [
    "BoundedPriorityQueue",
    "EnqueueResult",
    "RateLimitedDispatcher",
]
