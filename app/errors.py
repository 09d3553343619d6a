"""
Error taxonomy shared by the service layer and the blueprints.

Services raise these; blueprints turn them into the JSON envelope
``{"success": false, "error": ...}`` with the matching HTTP status.
"""


class CarWashError(Exception):
    status_code = 500

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self):
        body = {"success": False, "error": self.message}
        body.update(self.payload)
        return body


class ValidationError(CarWashError):
    status_code = 400


class AuthenticationError(CarWashError):
    status_code = 401


class AuthorizationError(CarWashError):
    status_code = 403


class NotFoundError(CarWashError):
    status_code = 404


class ConflictError(CarWashError):
    status_code = 409


class DuplicateCheckInWarning(ConflictError):
    """Same license plate already checked in today; caller may acknowledge and retry."""

    def __init__(self, license_plate, matches):
        super().__init__(
            f"Vehicle {license_plate} has already been checked in today. "
            "Resubmit with acknowledgeDuplicate=true to proceed anyway.",
            payload={"duplicate": True, "existingCheckIns": matches},
        )
        self.matches = matches


class UploadError(CarWashError):
    status_code = 502


class ServerError(CarWashError):
    status_code = 500
