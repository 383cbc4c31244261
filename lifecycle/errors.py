class SessionError(Exception):
    pass


class ConfigurationError(SessionError):
    """A required sub-component is missing or invalidly configured."""


class ProvisioningError(SessionError):
    """A sub-component failed to construct at runtime."""


class SessionRuntimeError(SessionError, RuntimeError):
    """Failure while the pipeline is running."""


class TeardownError(SessionError):
    """A single teardown step failed. Logged, never raised."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"teardown step '{step}' failed: {cause!r}")
        self.step = step
        self.cause = cause
