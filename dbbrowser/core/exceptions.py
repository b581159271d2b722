"""Custom exception classes."""


class BrowserError(Exception):
    """Base class for errors surfaced to the caller."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotConnectedError(BrowserError):
    """Exception raised when an operation needs a connection and none is set."""

    def __init__(self, message: str = "Not connected to a database"):
        super().__init__(message)


class ValidationError(BrowserError):
    """Exception for rejected input: empty records, unknown identifiers."""


class UnknownTableError(ValidationError):
    """Exception for a table name missing from the live whitelist."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        super().__init__(f"Table '{table_name}' not found")


class QueryExecutionError(BrowserError):
    """Exception for any failure reported by the database."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class DecodeError(BrowserError):
    """Exception for a cell that cannot be converted to its declared type."""

    def __init__(self, type_name: str, value: object, column: str = ""):
        self.type_name = type_name
        self.value = value
        self.column = column
        where = f" in column '{column}'" if column else ""
        super().__init__(f"Cannot decode {value!r} as {type_name}{where}")
