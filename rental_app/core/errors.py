# rental_app/core/errors.py
"""Domain errors raised by the rental core and services.

Each carries the HTTP status the API layer should answer with; the
exception handler in ``rental_app.main`` turns them into ``{"detail": ...}``.
"""


class RentalError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(RentalError):
    status_code = 400


class NotFound(RentalError):
    status_code = 404


class InvalidTransition(RentalError):
    status_code = 409


class StockConflict(RentalError):
    status_code = 409
