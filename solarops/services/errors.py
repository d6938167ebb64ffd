"""
Domain errors raised by the services layer.
Routes translate these into HTTPException responses.
"""


class SolarOpsError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SolarOpsError):
    """Bad input, caught before anything is written"""
    status_code = 422


class NotFoundError(SolarOpsError):
    status_code = 404


class InvalidTransition(SolarOpsError):
    """A status change the workflow does not allow"""
    status_code = 409


class FeatureUnavailable(SolarOpsError):
    status_code = 400
