from __future__ import annotations


class OrderDomainError(ValueError):
    code = "order_error"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class OrderValidationError(OrderDomainError):
    code = "validation_error"


class OrderNotFoundError(OrderDomainError):
    code = "not_found"


class OrderAccessDeniedError(OrderDomainError):
    code = "forbidden"


class IllegalOrderTransitionError(OrderDomainError):
    code = "illegal_transition"

    def __init__(self, *, current: str, target: str):
        super().__init__(f"Cannot change status from {current} to {target}", field="status")
        self.current = current
        self.target = target


class OrderNotCancellableError(OrderDomainError):
    code = "not_cancellable"

    def __init__(self, *, current: str):
        super().__init__("Order cannot be cancelled", field="status")
        self.current = current


class OrderConcurrentUpdateError(OrderDomainError):
    code = "conflict"
