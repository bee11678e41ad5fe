"""
Ledger error taxonomy.

Services raise these; create_app() renders any LedgerError as
{"error": message} with its status_code. Soft conditions (missing settings,
no eligible closer, duplicate suppression) are never raised.
"""


class LedgerError(Exception):
    """Base class for errors surfaced synchronously to the caller."""
    status_code = 500

    def __init__(self, message):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {'error': self.message}


class ValidationError(LedgerError):
    """Missing or malformed input — rejected before any state mutation."""
    status_code = 400


class NotFoundError(LedgerError):
    """Referenced affiliate, closer, appointment or conversion does not exist."""
    status_code = 404

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} {entity_id} not found')


class ConflictError(LedgerError):
    """Requested state transition is not allowed from the current state."""
    status_code = 409
