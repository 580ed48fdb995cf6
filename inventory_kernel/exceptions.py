"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI, API handlers, batch jobs) must react differently to a bad form
field, a stock shortfall the actor may override, and a lost approval race.
Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.resolve_stock_request(request_id, RequestDecision.APPROVE)
    except InsufficientStockWarning as e:
        if actor_confirms(e.available, e.requested):
            service.resolve_stock_request(
                request_id, RequestDecision.APPROVE, force=True,
            )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- MissingFieldError
    |   +-- InvalidDateError
    |   +-- QuantityExceedsRemainingError
    |   +-- QuantityExceedsStockError
    |   +-- RequestNotPendingError
    |   +-- DuplicatePendingRequestError
    |   +-- ImmutableFieldError
    |   +-- StockLineMismatchError
    |   +-- UnknownBranchError
    |   +-- UnknownKindError
    |
    +-- InsufficientStockWarning
    |
    +-- LinkageError
    |   +-- IssueNotFoundError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- PersistenceError
    |
    +-- ConcurrencyAnomaly
        +-- RequestAlreadyResolvedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-----------------------------------
Validation   | INVALID_QUANTITY            | quantity <= 0 or not a number
             | MISSING_FIELD               | mandatory field empty (bill number)
             | INVALID_DATE                | date not zero-padded YYYY-MM-DD
             | QUANTITY_EXCEEDS_REMAINING  | return/consumption > in-hand qty
             | QUANTITY_EXCEEDS_STOCK      | damage report > on-hand qty
             | REQUEST_NOT_PENDING         | edit/delete of a resolved request
             | DUPLICATE_PENDING_REQUEST   | second pending return request
             | IMMUTABLE_FIELD             | correction touches kind/branch/link
             | UNKNOWN_BRANCH              | branch id not in the configuration
             | UNKNOWN_KIND                | transaction kind not recognised
-------------|-----------------------------|-----------------------------------
Stock        | INSUFFICIENT_STOCK          | issue/approval beyond on-hand qty;
             |                             | the actor may retry with force=True
-------------|-----------------------------|-----------------------------------
Linkage      | ISSUE_NOT_FOUND             | operation needs an issue that does
             |                             | not exist
-------------|-----------------------------|-----------------------------------
Lookup       | REQUEST_NOT_FOUND           | request id unknown
             | TRANSACTION_NOT_FOUND       | transaction id unknown
-------------|-----------------------------|-----------------------------------
Persistence  | PERSISTENCE_ERROR           | the backing store refused a write
-------------|-----------------------------|-----------------------------------
Concurrency  | REQUEST_ALREADY_RESOLVED    | request left PENDING before this
             |                             | resolution (lost the CAS)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors never reach the store: they are raised before any
   session is opened, and the caller corrects and resubmits.

2. InsufficientStockWarning is not a failure of the ledger.  It asks the
   actor for explicit confirmation; resubmitting with ``force=True`` records
   the movement and may drive stock negative.

3. PersistenceError is returned inside ``WriteResult.failure`` by the
   boundary facade after the optimistic local view was reverted.  Call
   ``WriteResult.unwrap()`` to raise it instead.

4. ConcurrencyAnomaly means someone else already resolved the request.
   It is logged at WARNING; refresh and show the current state.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation


class ValidationError(InventoryKernelError):
    """Malformed or out-of-range input, rejected before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive number."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} must be a positive number, got {value!r}")


class MissingFieldError(ValidationError):
    """A mandatory field is empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str, context: str = ""):
        self.field = field
        self.context = context
        suffix = f" for {context}" if context else ""
        super().__init__(f"{field} is required{suffix}")


class InvalidDateError(ValidationError):
    """Date is not a zero-padded YYYY-MM-DD calendar date."""

    code: str = "INVALID_DATE"

    def __init__(self, value: object):
        self.value = str(value)
        super().__init__(f"Date must be formatted as YYYY-MM-DD, got {value!r}")


class QuantityExceedsRemainingError(ValidationError):
    """Return or consumption would exceed the quantity still in hand."""

    code: str = "QUANTITY_EXCEEDS_REMAINING"

    def __init__(self, issue_transaction_id: str, requested: object, remaining: object):
        self.issue_transaction_id = issue_transaction_id
        self.requested = str(requested)
        self.remaining = str(remaining)
        super().__init__(
            f"Cannot take {requested} from issue {issue_transaction_id}: "
            f"only {remaining} remaining in hand"
        )


class QuantityExceedsStockError(ValidationError):
    """Reported quantity exceeds the stock on hand for the line."""

    code: str = "QUANTITY_EXCEEDS_STOCK"

    def __init__(self, item_name: str, requested: object, available: object):
        self.item_name = item_name
        self.requested = str(requested)
        self.available = str(available)
        super().__init__(
            f"Cannot report {requested} of {item_name}: only {available} on hand"
        )


class RequestNotPendingError(ValidationError):
    """Only PENDING requests can be edited or deleted."""

    code: str = "REQUEST_NOT_PENDING"

    def __init__(self, request_type: str, request_id: str, status: str):
        self.request_type = request_type
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"{request_type} {request_id} is {status}; only PENDING requests can change"
        )


class DuplicatePendingRequestError(ValidationError):
    """A PENDING request for the same subject already exists."""

    code: str = "DUPLICATE_PENDING_REQUEST"

    def __init__(self, request_type: str, subject_id: str):
        self.request_type = request_type
        self.subject_id = subject_id
        super().__init__(
            f"A pending {request_type} already exists for {subject_id}"
        )


class ImmutableFieldError(ValidationError):
    """Correction attempted on a field that is fixed at insertion."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, fields: list[str]):
        self.fields = sorted(fields)
        super().__init__(f"Fields cannot be corrected: {', '.join(self.fields)}")


class StockLineMismatchError(ValidationError):
    """A RETURN names a different stock line than the issue it returns."""

    code: str = "STOCK_LINE_MISMATCH"

    def __init__(self, issue_transaction_id: str, expected: object, actual: object):
        self.issue_transaction_id = issue_transaction_id
        self.expected = str(expected)
        self.actual = str(actual)
        super().__init__(
            f"Return against issue {issue_transaction_id} must stay on {expected}, got {actual}"
        )


class UnknownBranchError(ValidationError):
    """Branch id is not part of the configured network."""

    code: str = "UNKNOWN_BRANCH"

    def __init__(self, branch_id: str):
        self.branch_id = branch_id
        super().__init__(f"Unknown branch: {branch_id}")


class UnknownKindError(ValidationError):
    """Transaction kind is not one of the ledger kinds."""

    code: str = "UNKNOWN_KIND"

    def __init__(self, kind: object):
        self.kind = str(kind)
        super().__init__(f"Unknown transaction kind: {kind!r}")


# Stock availability


class InsufficientStockWarning(InventoryKernelError):
    """
    On-hand quantity is below what is being issued.

    Not a hard error: the caller may confirm and retry with ``force=True``,
    which records the movement and leaves the stock line negative.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_name: str, requested: object, available: object):
        self.item_name = item_name
        self.requested = str(requested)
        self.available = str(available)
        super().__init__(
            f"Insufficient stock for {item_name}: requested {requested}, "
            f"available {available}"
        )


# Linkage


class LinkageError(InventoryKernelError):
    """A record references an issue transaction that does not exist."""

    code: str = "LINKAGE_ERROR"


class IssueNotFoundError(LinkageError):
    """The referenced ISSUE transaction does not exist."""

    code: str = "ISSUE_NOT_FOUND"

    def __init__(self, issue_transaction_id: str):
        self.issue_transaction_id = issue_transaction_id
        super().__init__(f"Issue transaction not found: {issue_transaction_id}")


# Lookup


class NotFoundError(InventoryKernelError):
    """Base exception for unknown ids."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_type: str, request_id: str):
        self.request_type = request_type
        self.request_id = request_id
        super().__init__(f"{request_type} not found: {request_id}")


class TransactionNotFoundError(NotFoundError):
    """Ledger transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


# Persistence


class PersistenceError(InventoryKernelError):
    """The backing store rejected a write."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store rejected {operation}: {reason}")


# Concurrency


class ConcurrencyAnomaly(InventoryKernelError):
    """Concurrent writers touched the same record."""

    code: str = "CONCURRENCY_ANOMALY"


class RequestAlreadyResolvedError(ConcurrencyAnomaly):
    """
    The request left PENDING before this resolution was applied.

    Raised by the compare-and-swap on request status, so two accountants
    approving the same request cannot both append a ledger transaction.
    """

    code: str = "REQUEST_ALREADY_RESOLVED"

    def __init__(self, request_type: str, request_id: str, status: str | None = None):
        self.request_type = request_type
        self.request_id = request_id
        self.status = status
        detail = f" (now {status})" if status else ""
        super().__init__(f"{request_type} {request_id} already resolved{detail}")
