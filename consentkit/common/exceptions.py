"""
Custom Exception Classes for consentkit

Hierarchical exception structure for error handling across services.
"""


class ConsentError(Exception):
    """Base exception for all consentkit errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class NotInitializedError(ConsentError):
    """Engine used before a configuration was loaded"""

    def __init__(self):
        super().__init__(
            "Consent engine not initialized. Call initialize() first.",
            recoverable=False,
        )


class InvalidConfigurationError(ConsentError):
    """Caller-supplied configuration is unusable (bad URL, bad settings)"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}", recoverable=False)


class InvalidConfigUrlError(ConsentError):
    """A request URL could not be built or parsed"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid configuration URL: {url}", recoverable=False)


class NetworkError(ConsentError):
    """Transport-level or non-2xx HTTP failure"""

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"Network error: {detail}", recoverable=True)


class ParseError(ConsentError):
    """Configuration document could not be decoded"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to parse configuration: {detail}", recoverable=True)


class StorageError(ConsentError):
    """Local persistence failed"""

    def __init__(self, detail: str, cause: BaseException | None = None):
        self.detail = detail
        self.cause = cause
        super().__init__(f"Storage error: {detail}", recoverable=True)


class ValidationError(ConsentError):
    """Decoded configuration violates a structural or semantic rule"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Validation error: {reason}", recoverable=False)
