"""
Typed Exception Hierarchy for the Store Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Store operators act on the outcome of a failed action: a missing item, a
shortfall in stock, a request that already moved on.  Callers must be able
to tell these apart without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (item name, available stock, ...)

Example - WRONG way to handle errors:
    try:
        engine.perform_action(request_id, "approve", actor)
    except Exception as e:
        if "Insufficient" in str(e):  # FRAGILE - message might change
            offer_forward_to_wsg()

Example - RIGHT way (what this module enables):
    try:
        engine.perform_action(request_id, "approve", actor)
    except InsufficientStockError as e:
        offer_forward_to_wsg(e.item_name, e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StoreKernelError:

    StoreKernelError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- RequestNotFoundError
    |
    +-- ValidationError
    |   +-- LocationMismatchError
    |
    +-- InsufficientStockError
    |
    +-- InvalidTransitionError
    |
    +-- UnauthorizedActionError
    |
    +-- DuplicateError
    |   +-- DuplicateSerialNumberError
    |   +-- ReferenceNumberExhaustedError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ITEM_NOT_FOUND              | Item missing or deactivated
                | REQUEST_NOT_FOUND           | No request with that id
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input, bad quantity, bad enum
                | LOCATION_MISMATCH           | Item not held at the required store
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Requested quantity exceeds stock level
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Action not legal from current status
                | UNAUTHORIZED_ACTION         | Actor role may not perform the action
----------------|-----------------------------|-----------------------------------------
Duplicate       | DUPLICATE_SERIAL_NUMBER     | Serial number already registered
                | REFERENCE_NUMBER_EXHAUSTED  | No free reference number for the day
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Row changed by another transaction
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS, fall back to the category:

    try:
        engine.perform_action(request_id, "allocate", actor, allocated_from="wsgStore")
    except InsufficientStockError as e:
        notify(f"Only {e.available} x {e.item_name} left")
    except ValidationError as e:
        reply(code=e.code, message=str(e))

2. CONFLICTS ARE RETRYABLE (the whole action, in a new transaction):

    run_with_conflict_retry(session_factory, operation, max_attempts=3)

3. EVERYTHING ELSE IS FINAL - the core never partially applies an action,
   so resubmitting is the caller's decision.

===============================================================================
"""


class StoreKernelError(Exception):
    """
    Base exception for all store kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STORE_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(StoreKernelError):
    """Referenced entity does not exist or is inactive."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} not found: {entity_id}")


class ItemNotFoundError(NotFoundError):
    """Item with given ID was not found or is deactivated."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, item_name: str | None = None):
        self.item_id = item_id
        self.item_name = item_name
        super().__init__(
            "Item", item_id, f"Item {item_name} not found" if item_name else None,
        )


class RequestNotFoundError(NotFoundError):
    """Request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__("Request", request_id)


# Validation exceptions


class ValidationError(StoreKernelError):
    """Malformed input, missing field, or invalid value."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class LocationMismatchError(ValidationError):
    """Item is not held at the store the action draws from."""

    code: str = "LOCATION_MISMATCH"

    def __init__(self, item_name: str, item_location: str, required: str):
        self.item_name = item_name
        self.item_location = item_location
        self.required = required
        super().__init__(
            f"Item {item_name} is not available at {required}",
            field="location",
        )


# Stock exceptions


class InsufficientStockError(StoreKernelError):
    """Requested quantity exceeds the item's stock level."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, item_name: str, requested: int, available: int):
        self.item_id = item_id
        self.item_name = item_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}. "
            f"Available: {available}, requested: {requested}"
        )


# Workflow exceptions


class InvalidTransitionError(StoreKernelError):
    """Action is not legal from the request's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, current_status: str, action: str):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} request {request_id} in status {current_status}"
        )


class UnauthorizedActionError(StoreKernelError):
    """Actor's declared role may not perform the action."""

    code: str = "UNAUTHORIZED_ACTION"

    def __init__(self, action: str, role: str | None, reason: str):
        self.action = action
        self.role = role
        self.reason = reason
        super().__init__(reason)


# Duplicate exceptions


class DuplicateError(StoreKernelError):
    """A unique value collided with an existing record."""

    code: str = "DUPLICATE"


class DuplicateSerialNumberError(DuplicateError):
    """Serial number is already registered to another item."""

    code: str = "DUPLICATE_SERIAL_NUMBER"

    def __init__(self, serial_number: str):
        self.serial_number = serial_number
        super().__init__(f"Serial number already exists: {serial_number}")


class ReferenceNumberExhaustedError(DuplicateError):
    """No free reference number could be found for the day."""

    code: str = "REFERENCE_NUMBER_EXHAUSTED"

    def __init__(self, day: str, attempts: int):
        self.day = day
        self.attempts = attempts
        super().__init__(
            f"No unique reference number for {day} after {attempts} attempt(s)"
        )


# Concurrency exceptions


class ConcurrencyError(StoreKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """Optimistic version check failed; the action may be retried."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(StoreKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
