"""Error taxonomy for an analysis run.

- configuration errors are surfaced immediately and never retried
- upstream query errors abort the analyzer and the run
- completion errors abort enrichment of the current result and the run
- output persistence problems are logged by the writer, never raised
"""

from __future__ import annotations


class TriageError(Exception):
    """Base class for all errors raised by the analyzer engine."""


class ConfigurationError(TriageError):
    pass


class CompletionServiceNotConfigured(ConfigurationError):
    def __init__(self, message: str = "AI provider not initialized") -> None:
        super().__init__(message)


class UnknownAnalyzerError(ConfigurationError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"unknown analyzer kind: {kind}")
        self.kind = kind


class IntegrationError(ConfigurationError):
    pass


class UpstreamQueryError(TriageError):
    pass


class CompletionError(TriageError):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class RunCancelled(TriageError):
    pass


class RunTimeout(RunCancelled):
    pass
