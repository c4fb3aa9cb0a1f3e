"""
Metatron error hierarchy.

Weak verification is deliberately absent: it is a gate the user answers,
not a failure.
"""


class MetatronError(Exception):
    """Base class for all errors raised by metatron."""


class ContractParseError(MetatronError):
    """A model reply did not contain EXPLANATION:, CODE: and VERIFICATION:
    in that order."""

    def __init__(self, raw: str):
        super().__init__("Response does not follow the EXPLANATION/CODE/VERIFICATION contract")
        self.raw = raw


class TransportError(MetatronError):
    """The provider call failed (network, HTTP status, SDK error)."""

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider} request failed: {detail}")
        self.provider = provider
        self.detail = detail


class SessionPersistenceError(MetatronError):
    """A session snapshot could not be written or read back."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


class ProviderError(MetatronError):
    """Unknown provider preset or backend."""
