"""Exception types raised inside the engine."""


class PhishGuardError(Exception):
    """Base exception for engine errors."""

    pass


class InvalidUrlError(PhishGuardError):
    """Input could not be parsed as a URL with a hostname."""

    def __init__(self, url: str, message: str = "Invalid URL"):
        self.url = url
        self.message = message
        super().__init__(f"{message}: {url!r}")


class ExternalSourceError(PhishGuardError):
    """A reputation, intelligence or age collaborator failed."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class ExternalSourceTimeoutError(ExternalSourceError):
    """A collaborator did not answer before its timeout."""

    def __init__(self, source: str, timeout: float):
        self.timeout = timeout
        super().__init__(source, f"timed out after {timeout:.3f}s")


class PersistenceError(PhishGuardError):
    """Loading or saving the persisted document failed."""

    pass
