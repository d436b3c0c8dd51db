class TaskFlowError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TaskFlowError):
    status_code = 404


class ConflictError(TaskFlowError):
    """The requested change clashes with existing state (duplicate membership etc.)."""

    status_code = 400


class ValidationError(TaskFlowError):
    status_code = 400


class PermissionDeniedError(TaskFlowError):
    status_code = 403
