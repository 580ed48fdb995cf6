"""
Request resolution primitives shared by the workflow services.

Responsibility:
    The storage-level compare-and-swap that moves a request out of PENDING,
    and the audit row written alongside every resolution.

Architecture position:
    Kernel > Services.  Flushes within the caller's session.

Invariants enforced:
    - A request leaves PENDING through ``UPDATE ... WHERE status='PENDING'``
      only; zero affected rows means another writer won.
    - ``request_resolutions`` is UNIQUE on ``(request_type, request_id)``; a
      duplicate insert is reported as ``RequestAlreadyResolvedError``.
    - The loser of a race is logged at WARNING as
      ``request_resolution_conflict``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.workflow import RequestResolution, RequestType
from inventory_kernel.exceptions import RequestAlreadyResolvedError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.requests import RequestResolutionModel

logger = get_logger("services.resolution")

PENDING = "PENDING"


def compare_and_set_status(
    session: Session,
    model: type,
    request_id: UUID,
    target_status: str,
    **values: Any,
) -> bool:
    """Flip ``request_id`` from PENDING to ``target_status``.

    Returns:
        True if this call made the transition, False if the row was not
        PENDING (or no longer exists).
    """
    result = session.execute(
        update(model)
        .where(model.id == request_id, model.status == PENDING)
        .values(status=target_status, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def conflict(
    request_type: RequestType,
    request_id: UUID,
    status: str | None = None,
) -> RequestAlreadyResolvedError:
    """Log a lost resolution race and build the error to raise."""
    logger.warning(
        "request_resolution_conflict",
        extra={
            "request_type": request_type.value,
            "request_id": str(request_id),
            "current_status": status,
        },
    )
    return RequestAlreadyResolvedError(request_type.value, str(request_id), status)


def record_resolution(
    session: Session,
    request_type: RequestType,
    request_id: UUID,
    outcome: str,
    resolved_at: int,
    transaction_id: UUID | None = None,
    forced: bool = False,
) -> RequestResolution:
    """Insert the audit row and flush everything pending in the session.

    Raises:
        RequestAlreadyResolvedError: the flush hit a uniqueness constraint
            (resolution row or ``source_request_id``), i.e. another writer
            already resolved this request.
    """
    resolution = RequestResolution(
        id=uuid4(),
        request_type=request_type,
        request_id=request_id,
        outcome=outcome,
        resolved_at=resolved_at,
        transaction_id=transaction_id,
        forced=forced,
    )
    session.add(RequestResolutionModel.from_dto(resolution))
    try:
        session.flush()
    except IntegrityError as exc:
        raise conflict(request_type, request_id) from exc

    logger.info(
        "request_resolved",
        extra={
            "request_type": request_type.value,
            "request_id": str(request_id),
            "outcome": outcome,
            "transaction_id": str(transaction_id) if transaction_id else None,
            "forced": forced,
        },
    )
    return resolution
