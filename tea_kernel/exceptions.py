"""
Typed Exception Hierarchy for the Tea Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the kernel reports belongs to exactly one caller-visible
category.  The transport layer maps categories to responses; operators read
the machine-readable ``code`` in the structured logs.  Nobody parses
messages.

Every exception carries:
  1. A ``category`` class attribute (one of six, see below)
  2. A ``code`` class attribute (stable, API-safe)
  3. Structured attributes for the context that caused it

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TeaKernelError (base)
    |
    +-- UnauthenticatedError            category UNAUTHENTICATED
    |   +-- MissingIdentityError
    |   +-- InvalidCredentialsError
    |   +-- AccountGoneError
    |
    +-- ForbiddenError                  category FORBIDDEN
    |   +-- AdminRequiredError
    |
    +-- NotFoundError                   category NOT_FOUND
    |   +-- ItemNotFoundError
    |   +-- AccountNotFoundError
    |
    +-- ConflictError                   category CONFLICT
    |   +-- AccountAlreadyExistsError
    |
    +-- InvalidInputError               category INVALID_INPUT
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- PasswordTooShortError
    |   +-- SelfDeletionError
    |   +-- EmptyMovementError
    |   +-- InsufficientStockError
    |
    +-- InternalError                   category INTERNAL
        +-- ImmutabilityViolationError
        +-- LedgerDivergenceError

===============================================================================
OWNERSHIP MASKING
===============================================================================

ItemNotFoundError is raised both when an item does not exist and when it
exists but belongs to another account.  The message and attributes are the
same in both cases.  There is no "not your item" error on purpose.

===============================================================================
PROPAGATION
===============================================================================

Business-rule errors (every category except INTERNAL) abort the current
operation.  The surrounding ``session_scope`` rolls back whatever the
operation had flushed, and nothing is retried.  Any other exception escaping
a transaction is wrapped in InternalError by the API facade after rollback.
===============================================================================
"""


class TeaKernelError(Exception):
    """
    Base exception for all tea kernel errors.

    All subclasses must have ``code`` and ``category`` class attributes.
    """

    code: str = "TEA_KERNEL_ERROR"
    category: str = "INTERNAL"


# Unauthenticated


class UnauthenticatedError(TeaKernelError):
    """Caller identity is missing, invalid, expired, or credentials mismatch."""

    code: str = "UNAUTHENTICATED"
    category: str = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class MissingIdentityError(UnauthenticatedError):
    """No valid identity assertion accompanied the request."""

    code: str = "MISSING_IDENTITY"

    def __init__(self):
        super().__init__("Missing or invalid identity assertion")


class InvalidCredentialsError(UnauthenticatedError):
    """Login name or credential did not match."""

    code: str = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid username or password")


class AccountGoneError(UnauthenticatedError):
    """The identity assertion names an account that no longer exists."""

    code: str = "ACCOUNT_GONE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account no longer exists: {account_id}")


# Forbidden


class ForbiddenError(TeaKernelError):
    """Valid identity lacking the required role."""

    code: str = "FORBIDDEN"
    category: str = "FORBIDDEN"


class AdminRequiredError(ForbiddenError):
    """Operation requires the admin role."""

    code: str = "ADMIN_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Administrator role required for {operation}")


# Not found


class NotFoundError(TeaKernelError):
    """No matching row within the caller's scope."""

    code: str = "NOT_FOUND"
    category: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """
    Item does not exist within the caller's ownership scope.

    Covers both "absent" and "owned by another account".
    """

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class AccountNotFoundError(NotFoundError):
    """Account with given ID does not exist."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


# Conflict


class ConflictError(TeaKernelError):
    """Write collides with an existing unique value."""

    code: str = "CONFLICT"
    category: str = "CONFLICT"


class AccountAlreadyExistsError(ConflictError):
    """Account name is already taken."""

    code: str = "ACCOUNT_ALREADY_EXISTS"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Account already exists: {name}")


# Invalid input


class InvalidInputError(TeaKernelError):
    """Malformed or out-of-range field values."""

    code: str = "INVALID_INPUT"
    category: str = "INVALID_INPUT"


class MissingFieldError(InvalidInputError):
    """A required field was empty or absent."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class InvalidFieldError(InvalidInputError):
    """A field value is out of range or of the wrong shape."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class PasswordTooShortError(InvalidInputError):
    """New credential is shorter than the configured minimum."""

    code: str = "PASSWORD_TOO_SHORT"

    def __init__(self, minimum: int):
        self.minimum = minimum
        super().__init__(f"Password must be at least {minimum} characters")


class SelfDeletionError(InvalidInputError):
    """An administrator attempted to delete their own account."""

    code: str = "SELF_DELETION_FORBIDDEN"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("Cannot delete the account you are logged in as")


class EmptyMovementError(InvalidInputError):
    """Stock adjustment with a zero delta."""

    code: str = "EMPTY_MOVEMENT"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Stock adjustment for item {item_id} has zero change")


class InsufficientStockError(InvalidInputError):
    """Stock adjustment would drive the quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, quantity: int, delta: int):
        self.item_id = item_id
        self.quantity = quantity
        self.delta = delta
        super().__init__(
            f"Cannot apply change {delta} to item {item_id}: "
            f"only {quantity} in stock"
        )


# Internal


class InternalError(TeaKernelError):
    """Store unavailable, transaction failure, or any unexpected fault."""

    code: str = "INTERNAL"
    category: str = "INTERNAL"

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)


class ImmutabilityViolationError(InternalError):
    """Attempt to modify or individually delete a ledger entry."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


class LedgerDivergenceError(InternalError):
    """An item's quantity no longer matches its ledger's running balance."""

    code: str = "LEDGER_DIVERGENCE"

    def __init__(self, item_id: str, quantity: int, ledger_balance: int | None):
        self.item_id = item_id
        self.quantity = quantity
        self.ledger_balance = ledger_balance
        super().__init__(
            f"Item {item_id} quantity {quantity} does not match "
            f"ledger balance {ledger_balance}"
        )
