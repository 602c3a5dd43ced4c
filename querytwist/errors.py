class QueryTwistError(Exception):
    """Base class for pipeline errors."""


class IngestionError(QueryTwistError):
    """The source file is malformed or holds no rows."""


class TranslationError(QueryTwistError):
    """The language model call failed, timed out or returned nothing usable."""


class EngineUnavailableError(QueryTwistError):
    """The SQL engine is not connected."""


class NoDatasetError(QueryTwistError):
    """A query was submitted before any dataset was loaded."""


class ReadOnlyViolationError(QueryTwistError):
    """The SQL holds a statement other than a SELECT."""
