"""Exception hierarchy for readscope."""


class ReadscopeError(Exception):
    """Base class for every error raised by readscope."""


class ParseUnavailable(ReadscopeError):
    """The parser could not produce a syntax tree for a file."""


class EngineError(ReadscopeError):
    """A call into the external scoring engine failed.

    ``path`` is the snippet or source file handed to the engine;
    ``file_path`` is the source file being rated, set by the pipeline.
    """

    def __init__(self, message: str, path: str | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.path = path
        self.cause = cause
        self.file_path: str | None = None

    def __str__(self) -> str:
        msg = super().__str__()
        if self.path:
            msg = f"{msg} ({self.path})"
        return msg


class ScoringFailure(EngineError):
    """The scoring engine could not rate a code unit.

    Raised for spawn errors, timeouts, non-zero exits, unwritable snippet
    files and output that cannot be parsed.
    """


class MetricsFailure(EngineError):
    """Scoring succeeded but the metric vector could not be extracted."""


class MissingMetricsError(ReadscopeError, ValueError):
    """Improvement ranking was asked for a result without metrics."""
