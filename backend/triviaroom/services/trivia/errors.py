"""Error taxonomy for the trivia session services.

Everything deriving from :class:`TriviaError` is user visible: transport
handlers turn it into a structured failure for the triggering command.
:class:`PersistenceError` is the exception; the persistence mirror raises and
absorbs it internally so it never reaches game flow.
"""


class TriviaError(Exception):
    code = 'error'
    http_status = 400

    def __init__(self, message=None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class ValidationError(TriviaError):
    code = 'invalid_payload'


class NotFoundError(TriviaError):
    code = 'not_found'
    http_status = 404


class CatalogUnavailable(TriviaError):
    code = 'catalog_unavailable'
    http_status = 503


class CodeSpaceExhausted(TriviaError):
    code = 'code_space_exhausted'
    http_status = 503


class DuplicateConnection(TriviaError):
    code = 'duplicate_connection'
    http_status = 409


class PersistenceError(Exception):
    """A write to the durable mirror failed."""
