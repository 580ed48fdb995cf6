"""
Write results (``inventory_kernel.domain.results``).

Responsibility
--------------
The boundary result type for two-phase writes: a write is applied to the
local read view first, then confirmed or rolled back against the store.
Callers get either ``success(value)`` or ``failure(error, revert_token)``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from inventory_kernel.exceptions import InventoryKernelError

T = TypeVar("T")


class WriteStatus(str, Enum):
    """Outcome of a boundary write."""

    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class RevertToken:
    """Handle identifying one optimistic change in the local view."""

    token_id: UUID
    operation: str


@dataclass(frozen=True)
class WriteResult(Generic[T]):
    """Result of a boundary write."""

    status: WriteStatus
    value: T | None = None
    error: InventoryKernelError | None = None
    revert_token: RevertToken | None = None

    @classmethod
    def success(cls, value: T) -> WriteResult[T]:
        return cls(status=WriteStatus.CONFIRMED, value=value)

    @classmethod
    def failure(
        cls,
        error: InventoryKernelError,
        revert_token: RevertToken | None = None,
    ) -> WriteResult[T]:
        return cls(status=WriteStatus.FAILED, error=error, revert_token=revert_token)

    @property
    def is_success(self) -> bool:
        return self.status == WriteStatus.CONFIRMED

    def unwrap(self) -> T:
        """Return the confirmed value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
