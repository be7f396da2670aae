# spark/taxi_tip/errors.py


class PipelineError(Exception):
    """Base class for every failure that aborts the extract job."""


class EngineConnectionError(PipelineError, ConnectionError):
    """Spark session could not be created (no JVM, no cluster, no resources)."""


class SchemaError(PipelineError):
    """Input columns are missing, mismatched or cannot be parsed."""


class FilterError(PipelineError):
    """A row predicate references a column the table does not have."""


class StorageError(PipelineError, IOError):
    """Reading from or writing to storage failed."""
