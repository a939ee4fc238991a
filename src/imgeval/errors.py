class ImgEvalError(RuntimeError):
    """Base class for errors raised by the evaluation toolkit."""


class ConfigError(ImgEvalError):
    """Raised when configuration values are missing or invalid."""


class DatasetFileError(ImgEvalError):
    """Raised when a dataset source cannot be read as a whole (missing, oversize)."""


class ResultsImportError(ImgEvalError):
    """Raised when a results file cannot be turned into an evaluation run."""


class RunNotFoundError(ImgEvalError):
    """Raised when a run id is not present in the results store."""


class ComparisonError(ImgEvalError):
    """Raised when a set of runs cannot be compared."""
