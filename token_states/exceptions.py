"""Exception hierarchy for the token states engine."""


class TokenStatesError(Exception):
    """Base class for all errors raised by this package."""


class ConfigValidationError(TokenStatesError, ValueError):
    """Authored configuration (usually JSON text) could not be accepted."""


class MissingDocumentError(TokenStatesError, KeyError):
    """A scene, token or actor referenced by id no longer exists."""

    def __init__(self, kind: str, doc_id: str):
        self.kind = kind
        self.doc_id = doc_id
        super().__init__(f"{kind} '{doc_id}' not found")

    def __str__(self):
        return self.args[0]
