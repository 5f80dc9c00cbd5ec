class StockFlowError(Exception):
    """Base exception for StockFlow service errors."""

    status_code = 500
    default_message = "An error occurred in StockFlow"

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Machine-readable error code
            details: Additional error details (rendered as the response ``data``)
        """
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class InvalidInputError(StockFlowError):
    """Raised for missing or malformed request fields."""

    status_code = 400
    default_message = "Invalid input"


class ConflictError(StockFlowError):
    """Raised when a write would violate a uniqueness rule (duplicate SKU)."""

    status_code = 409
    default_message = "Conflict"


class NotFoundError(StockFlowError):
    """Raised when a requested resource is not found."""

    status_code = 404
    default_message = "Resource not found"


class InternalError(StockFlowError):
    """Raised for unexpected data-access or runtime failures."""

    status_code = 500
    default_message = "Internal server error"
