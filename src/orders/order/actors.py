"""Who is acting on an order."""

from dataclasses import dataclass
from enum import Enum


class ActorRole(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole

    @classmethod
    def of(cls, actor_id: str, role: str) -> "Actor":
        return cls(id=str(actor_id), role=ActorRole(role))

    @classmethod
    def system(cls) -> "Actor":
        return cls(id="system", role=ActorRole.SYSTEM)

    @property
    def is_buyer(self) -> bool:
        return self.role == ActorRole.BUYER

    @property
    def is_seller(self) -> bool:
        return self.role == ActorRole.SELLER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM
