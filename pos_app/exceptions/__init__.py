"""Custom exceptions for the POS refund desk."""

class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class RefundValidationError(BusinessLogicError):
    """Raised when a refund request cannot be accepted as submitted."""
    def __init__(self, message, field=None):
        payload = {'field': field} if field else None
        super().__init__(message, status_code=400, payload=payload)
        self.field = field

class DuplicateSubmissionError(BusinessLogicError):
    """Raised when a refund with the same idempotency key already exists."""
    def __init__(self, idempotency_key, refund_id=None):
        message = f"Refund already submitted for key {idempotency_key}"
        super().__init__(message, status_code=409, payload={'refund_id': refund_id})
        self.refund_id = refund_id

class UnauthorizedError(PosError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
