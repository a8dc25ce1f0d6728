class ObjectNotFoundException(Exception):
    """Exception raised when an object with the specified identifier does not exist."""

    def __init__(self, message: str = "The requested object was not found."):
        super().__init__(message)


class KeyAlreadyExistsException(Exception):
    """Exception raised when trying to insert a row that would violate a unique constraint."""

    def __init__(self, message: str = "An object with the same key already exists."):
        super().__init__(message)


class DAOReleasedError(RuntimeError):
    """Raised when a data-access object is used after its connection was released."""

    def __init__(self, message: str = "The DAO connection has already been released."):
        super().__init__(message)


# --- Construction errors ---
# Programmer errors in descriptor construction. Always raised before any SQL
# reaches the database, never converted into a failure result.
class QueryConstructionError(ValueError):
    """Base class for errors raised while compiling a statement."""
    pass


class FieldValueMismatch(QueryConstructionError):
    """The number of fields and values do not match."""

    def __init__(self, fields: int, values: int):
        super().__init__(
            f"The number of fields and values do not match "
            f"({fields} fields, {values} values)."
        )
        self.fields = fields
        self.values = values


class EmptyUpdate(QueryConstructionError):
    """An UPDATE was requested with nothing to set."""

    def __init__(self, message: str = "There are no fields or values to update."):
        super().__init__(message)


class InvalidMethod(QueryConstructionError):
    """A toggle handler received a method other than 'post' or 'delete'."""

    def __init__(self, method: object):
        super().__init__(f"Invalid method {method!r}; expected 'post' or 'delete'.")
        self.method = method


class InvalidField(QueryConstructionError):
    """A relation or column name is not part of the schema registry."""
    pass


class InvalidParameter(QueryConstructionError):
    """A bound value or descriptor attribute is outside the supported set."""
    pass


class InvalidPagination(QueryConstructionError):
    """LIMIT/OFFSET values must be non-negative integers."""
    pass


class UnguardedStatement(QueryConstructionError):
    """UPDATE or DELETE compiled without any WHERE condition."""

    def __init__(self, statement: str, table: str):
        super().__init__(
            f"Refusing to compile {statement} on '{table}' without a WHERE "
            f"condition. Pass allow_all=True to affect every row."
        )
        self.statement = statement
        self.table = table
