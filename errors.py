"""Domain exceptions for the storefront API.

Every error carries the HTTP status it maps to; ``main`` turns them into the
``{"success": false, "message": ...}`` envelope.
"""


class StoreError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StoreError):
    """Raised when a request is well-formed JSON but semantically invalid."""

    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    """Raised when an order line references a product that doesn't exist."""

    def __init__(self, product_ref: str):
        self.product_ref = product_ref
        super().__init__(f"Product not found: {product_ref}")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found")


class InsufficientStockError(StoreError):
    """Raised when a product is inactive or has fewer units than requested."""

    status_code = 400

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f"Insufficient stock for {product_name}")


class InvalidStatusTransitionError(StoreError):
    status_code = 400

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from {current} to {requested}")


class OrderNotCancellableError(StoreError):
    status_code = 400

    def __init__(self, status: str):
        self.status = status
        super().__init__("Order cannot be cancelled at this stage")


class OrderAlreadyPaidError(StoreError):
    status_code = 400

    def __init__(self):
        super().__init__("Order is already paid")


class NotAuthorizedError(StoreError):
    """Raised when the caller is authenticated but does not own the resource."""

    status_code = 403
