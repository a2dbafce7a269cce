"""Abstract base class for notice relays."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

# (actor_id, container_id, reduction_pct) -> None
ContainerSettingApplier = Callable[[str, str, int], None]


@dataclass(frozen=True)
class Notice:
    """A user-visible notice fanned out to connected clients."""

    kind: str  # "capacity_exceeded" | "reduction_set"
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class NoticeRelay(ABC):
    """Narrow interface between the capacity core and whatever relays changes.

    The core only ever needs two things from the outside world:
    apply an approved container-setting change on the privileged side,
    and broadcast a notice. How (or whether) that is networked is hidden here.
    """

    def __init__(self) -> None:
        self._applier: Optional[ContainerSettingApplier] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the relay name."""
        ...

    def register_applier(self, applier: ContainerSettingApplier) -> None:
        """Register the privileged write used by apply_container_setting()."""
        self._applier = applier

    def apply_container_setting(
        self, actor_id: str, container_id: str, reduction_pct: int
    ) -> None:
        """Apply an approved reduction change.

        Raises:
            RuntimeError: If no applier has been registered.
        """
        if self._applier is None:
            raise RuntimeError(f"Relay '{self.name}' has no registered applier")
        self._applier(actor_id, container_id, reduction_pct)

    @abstractmethod
    def broadcast(self, notice: Notice) -> None:
        """Deliver a notice to every connected client."""
        ...

    def recent(self) -> list[Notice]:
        """Return recently broadcast notices, oldest first."""
        return []
