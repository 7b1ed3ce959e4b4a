"""
Error taxonomy for the deployment workflow.

The workflow core returns these inside transition results instead of raising
them. The HTTP layer raises them and main.py maps each to a status code.
"""

from typing import Optional, Sequence


class DeploymentError(Exception):
    code = "deployment_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(DeploymentError):
    """A required field for the current step is missing or invalid."""
    code = "validation_error"

    def __init__(self, message: str, fields: Sequence[str] = ()):
        super().__init__(message)
        self.fields = list(fields)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "fields": self.fields}


class DirectionConflictError(DeploymentError):
    """Neither OUT nor IN is legal, e.g. two open deployments for one vehicle."""
    code = "direction_conflict"

    def __init__(self, message: str, vehicle_number: Optional[str] = None, open_count: int = 0):
        super().__init__(message)
        self.vehicle_number = vehicle_number
        self.open_count = open_count

    def to_dict(self) -> dict:
        return {**super().to_dict(), "vehicle_number": self.vehicle_number,
                "open_count": self.open_count}


class DataIntegrityError(DeploymentError):
    """Negative or zero duration, or an odometer that went backwards."""
    code = "data_integrity"


class RemoteError(DeploymentError):
    """A record-store call failed. The caller keeps its draft and may retry."""
    code = "remote_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {**super().to_dict(), "status_code": self.status_code}
