class AppError(Exception):
    """Base for failures an action reports back instead of crashing."""

    message = "Operation failed"
    status_code = 400

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotFound(AppError):
    message = "Not found"
    status_code = 404


class Unauthenticated(AppError):
    message = "Not logged in"
    status_code = 401


class Unauthorized(AppError):
    message = "Unauthorized"
    status_code = 403


class Conflict(AppError):
    message = "Already exists"
    status_code = 409


class ValidationFailed(AppError):
    message = "Invalid input"
    status_code = 400


class StoreFailure(AppError):
    # Raw database errors stay in the server log.
    message = "Operation failed"
    status_code = 500
