"""Exception taxonomy shared by the record managers, stores and HTTP layer."""


class InvoiceProError(Exception):
    status_code = 500
    message = 'Something went wrong'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(InvoiceProError):
    """Input rejected at the submission boundary.

    ``errors`` maps a field name (dotted for nested fields, e.g. ``items.0.price``)
    to a human readable message so the caller can show it next to the field.
    """

    status_code = 400
    message = 'Invalid input'

    def __init__(self, errors=None, message=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        return {'error': self.message, 'fields': self.errors}


class NotFoundError(InvoiceProError):
    status_code = 404
    message = 'Not found'


class InvalidTransitionError(InvoiceProError):
    status_code = 409
    message = 'Invalid status transition'

    def __init__(self, current, requested):
        super().__init__(f"Cannot move invoice from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class AuthenticationError(InvoiceProError):
    status_code = 401
    message = 'Authentication required'


class StoreError(InvoiceProError):
    message = 'Data store operation failed'
