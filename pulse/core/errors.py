"""Exception types shared by the verification pipeline."""


class PulseError(RuntimeError):
    """Base class for errors raised by this package."""


class AdapterError(PulseError):
    """Raised inside a source adapter; never escapes ``SourceAdapter.lookup``."""


class AdapterTransportError(AdapterError):
    """Network failure, timeout or non-2xx response from a source."""


class AdapterParseError(AdapterError):
    """The source answered, but not in a shape we understand."""


class NotFoundError(PulseError):
    """The source has no record for the identifier."""


class RequestValidationError(PulseError):
    """The business identifier supplied by the caller is unusable."""
