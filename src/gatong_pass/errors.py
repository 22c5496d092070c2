"""Custom exception classes for the GatongPass core.

Verification failures (student not found, contact mismatch) are ordinary
results, not exceptions. The classes here cover conditions the caller
cannot correct by re-entering data.
"""

from typing import Optional


class FetchError(Exception):
    """Raised when the roster cannot be retrieved from its source.

    This typically occurs when:
    - The spreadsheet export URL is unreachable or times out
    - The export returns a non-2xx status (sheet unpublished, wrong gid)

    No partial roster is ever returned alongside this error.
    """

    def __init__(
        self, message: str, url: Optional[str] = None, status_code: Optional[int] = None
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class TooManyAttemptsError(Exception):
    """Raised when a claimed identity has exhausted its verification attempts.

    The caller should wait ``retry_after`` seconds before trying again.
    """

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or is malformed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message)


class UnknownPresetError(Exception):
    """Raised when a survey preset id does not exist."""

    def __init__(self, message: str, preset_id: Optional[str] = None) -> None:
        self.preset_id = preset_id
        super().__init__(message)


class IncompleteSubmissionError(Exception):
    """Raised when a submission is missing answers to required form items."""

    def __init__(self, message: str, missing: Optional[list[str]] = None) -> None:
        self.missing = missing or []
        super().__init__(message)
