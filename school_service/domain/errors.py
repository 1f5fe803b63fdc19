class SchoolError(Exception):
    """Base error rendered by the HTTP layer with its own status code."""
    status_code = 500

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class AuthenticationError(SchoolError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(SchoolError):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class ValidationError(SchoolError):
    status_code = 400

    def __init__(self, message: str, field: str | None = None, errors: list[dict] | None = None):
        if errors is None and field:
            errors = [{"field": field, "message": message}]
        super().__init__(message, errors)


class NotFoundError(SchoolError):
    status_code = 404

    def __init__(self, resource: str, id=None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(message)


class ConflictError(SchoolError):
    status_code = 409
