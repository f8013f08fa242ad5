class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class ItemUnavailableError(ValidationError):
    pass


class EmptyOrderError(ValidationError):
    pass


class NotFoundError(DomainException):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class StudentNotFoundError(NotFoundError):
    pass


class ItemNotFoundError(NotFoundError):
    pass


class LineNotFoundError(NotFoundError):
    pass


class OrderNotModifiable(DomainException):
    def __init__(self, order_id: str, status):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} can only be modified while PENDING (current: {status.value})")


class InvalidTransition(DomainException):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition from {current.value} to {target.value}")


class CapacityExceeded(DomainException):
    def __init__(self, limit: int, requested: int):
        self.limit = limit
        self.requested = requested
        super().__init__(f"Order would contain {requested} units, maximum is {limit}")


class InsufficientBalance(DomainException):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Not enough loyalty points. Available: {available}, required: {required}")


class RedemptionNotApplicable(DomainException):
    pass
