"""Domain errors for rackctl."""


class RackError(RuntimeError):
    """Raised when a rack operation cannot continue."""


class ConfigError(RackError):
    """Invalid or unreadable configuration."""


class CatalogUnavailable(RackError):
    """The version registry could not be reached or returned malformed data."""


class EmptyCatalog(RackError):
    pass


class ReleaseNotFound(RackError):
    pass


class IsLatest(RackError):
    """The given version is already the newest known release."""


class RemoteError(RackError):
    """The rack management API answered with an error."""


class RemoteTransportError(RemoteError):
    """The rack management API could not be reached."""


class TriggerRejected(RackError):
    """The rack refused to start a version transition."""


class NoopUpdate(RackError):
    """The requested change matches the current configuration.

    Informational: callers may treat it as success.
    """


class PollingTransportError(RackError):
    pass


class RolloutTimeout(RackError):
    pass


class RollbackDetected(RackError):
    """The rack reverted the update and is running the previous version."""


class InvalidParameter(RackError):
    pass


class CommandError(RackError):
    """An external command failed or could not be executed."""


class LocalLifecycleError(RackError):
    """The local rack container could not be started or stopped."""
