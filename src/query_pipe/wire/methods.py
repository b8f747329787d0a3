"""Method tags understood by the engine."""

from enum import StrEnum


class Method(StrEnum):
    """Short mnemonic tag sent under the ``@`` key of every request."""

    OPEN_DATABASE = "c"
    EXECUTE = "e"
    QUERY = "q"
    FETCH = "qf"
    CLOSE_CURSOR = "qx"
    QUERY_ALL = "qq"
    OPEN_APPENDER = "a"
    APPEND = "ai"
    FINALIZE_APPENDER = "ax"
    CLOSE_ENVIRONMENT = "x"
