"""
BaseService -- abstract base for the kernel's write services.

Responsibility:
    Common constructor for every service that mutates the store.  Services
    receive a SQLAlchemy ``Session`` and a ``Clock`` and use
    ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller (``InventoryService`` via
      ``session_scope``), so a workflow resolution and its ledger append
      commit or roll back together.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a ``Session`` from the caller and flushes within the active
        transaction.  The clock defaults to ``SystemClock``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
