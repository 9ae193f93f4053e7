"""Per-request business/actor context passed explicitly to services."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PosContext:
    """Who is acting, and for which business."""
    business_id: Optional[int] = None
    actor_id: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.business_id is not None and self.actor_id is not None
