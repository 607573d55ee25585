"""Errors raised by the scheduling core.

Each error carries the HTTP status the API layer answers with, so controllers
never have to translate them by hand.
"""


class SchedulingError(Exception):
    status_code = 400

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        data = {'error': self.message, 'code': type(self).__name__}
        if self.details:
            data['details'] = self.details
        return data


class SlotConflict(SchedulingError):
    """A scheduled booking collides with an active appointment."""
    status_code = 409


class PaymentMismatch(SchedulingError):
    """The confirmed amount differs from the appointment's frozen total."""
    status_code = 422


class InvalidTransition(SchedulingError):
    """The appointment's current state forbids the requested operation."""
    status_code = 409


class NotFound(SchedulingError):
    status_code = 404


class ValidationError(SchedulingError):
    status_code = 400


class PermissionDenied(SchedulingError):
    """The actor is not a party to the appointment it is acting on."""
    status_code = 403
