"""
DAO-specific exception classes.
"""


class DAOError(Exception):
    """Base class for all aerodao errors.
    """


class ConfigurationError(DAOError):
    """Malformed or ambiguous entity metadata, detected at build time.
    """


class ConnectionFailure(DAOError):
    """Error establishing the store connection or missing client.
    """


class QueryError(DAOError):
    """Error in query syntax or translation.
    """


class TypeConversionError(DAOError):
    """Error converting a stored value into an entity field.
    """


class ValidationError(DAOError):
    """Error in input validation.
    """


class ParameterMismatchError(ValidationError):
    """Supplied query and replaceable arguments don't match.
    """


class OperationError(DAOError):
    """Failure of a DAO call, tagged with the originating operation.

    The triggering exception is kept as ``__cause__``.
    """

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f'{operation}: {cause}')
