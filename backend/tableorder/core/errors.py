"""Domain errors raised by services and rendered by the API layer.

Each error carries the HTTP status it maps to and a short machine-readable
code. Business-rule violations never change state.
"""

from fastapi import status


class TableOrderError(Exception):
    """Base class for all domain errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ----- validation -----

class ValidationError(TableOrderError):
    code = "validation_error"


class OrderValidationError(ValidationError):
    """Request is well-formed but violates an ordering rule (empty cart, disabled payment mode)."""


class MenuSourceError(TableOrderError):
    """The tenant's menu feed is missing, unreachable or malformed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "menu_unavailable"


# ----- authorization -----

class AccessDeniedError(TableOrderError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"


class TableUnavailableError(AccessDeniedError):
    """Tenant is inactive or the table does not exist / is inactive."""

    code = "table_unavailable"

    def __init__(self, tenant_id: str, table_number: int | str):
        self.tenant_id = tenant_id
        self.table_number = table_number
        super().__init__(f"Table {table_number} is not available for ordering")


# ----- not found -----

class NotFoundError(TableOrderError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class TenantNotFoundError(NotFoundError):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Restaurant {tenant_id} not found")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


# ----- collaborators -----

class PaymentLinkError(TableOrderError):
    """The payment-link provider failed; transient, the customer may retry."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "payment_link_failed"


# ----- business rules -----

class BusinessRuleError(TableOrderError):
    status_code = status.HTTP_409_CONFLICT
    code = "business_rule"


class InvalidTransitionError(BusinessRuleError):
    """Requested status change is not allowed from the order's current status."""

    code = "invalid_transition"

    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from '{current}' to '{target}'")


class PaymentRequiredError(BusinessRuleError):
    code = "payment_required"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} must be paid before cooking can start")


class ConcurrentUpdateError(BusinessRuleError):
    """The order changed between read and conditional write."""

    code = "concurrent_update"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} was updated by someone else, refresh and try again")


class DuplicateUserError(BusinessRuleError):
    code = "duplicate_user"
