"""Error taxonomy shared by the services and mapped to HTTP status codes in ``heatlog.main``."""


class HeatLogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HeatLogError):
    """Malformed heat number or a missing/invalid required field."""
    status_code = 400


class NotFoundError(HeatLogError):
    status_code = 404


class ConflictError(HeatLogError):
    """Uniqueness or ownership violation."""
    status_code = 409


class PersistenceError(HeatLogError):
    """The relational store rejected or failed a statement."""
    status_code = 500
