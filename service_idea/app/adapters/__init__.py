"""
Adapters package for the Idea Service.

Contains clients for the service's external dependencies: the counter store
backing the rate limiter and the generation API behind the gate. Adapters
map transport failures onto shared errors and never retry on their own.
"""

from .counter_store import CounterStore, UpstashRestStore, RedisCounterStore, build_counter_store
from .idea_client import GeminiIdeaClient

__all__ = [
    "CounterStore",
    "UpstashRestStore",
    "RedisCounterStore",
    "build_counter_store",
    "GeminiIdeaClient",
]
