"""In-memory adapters for testing and single-process development."""

from .attempts import InMemoryLoginAttemptStore
from .delivery import InMemoryDeliveryGateway, SentMessage
from .identities import InMemoryIdentityStore
from .uow import InMemoryUnitOfWork
from .users import InMemoryUserRepository

__all__: list[str] = [
    "InMemoryDeliveryGateway",
    "InMemoryIdentityStore",
    "InMemoryLoginAttemptStore",
    "InMemoryUnitOfWork",
    "InMemoryUserRepository",
    "SentMessage",
]
