"""Exceptions related to testenv-lcr."""

__all__ = [
    "LcrException",
    "InputException",
    "CommandException",
    "HelmException",
    "UndeclaredKeyError",
    "ClosedSourceError",
    "TypeMismatchError",
    "ClusterException",
    "ResourceCreateError",
    "AlreadyExistsError",
    "ObjectNotFoundError",
    "ReadinessTimeoutError",
    "PortForwardTimeoutError",
]


class LcrException(Exception):
    """Generic base exception used for this library."""


class InputException(LcrException):
    """Raised when the input files or values are not formatted as expected."""


class CommandException(LcrException):
    """Raised when there is a failure running a subcommand."""


class HelmException(CommandException):
    """Raised when there is a failure running a helm command."""


class UndeclaredKeyError(LcrException):
    """Raised when a key was not declared when the eventual config was created."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key '{key}' must be declared at initialization")
        self.key = key


class ClosedSourceError(LcrException):
    """Raised when the eventual config is closed before a value arrives."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Source for key '{key}' was closed before a value was set")
        self.key = key


class TypeMismatchError(LcrException):
    """Raised when an awaited value is not of the requested type."""

    def __init__(self, key: str, expected: type, value: object) -> None:
        super().__init__(
            f"Value for key '{key}' is not of type {expected.__name__} "
            f"(was {value.__class__.__name__})"
        )
        self.key = key
        self.expected = expected
        self.value = value


class ClusterException(LcrException):
    """Raised when a cluster API request fails."""


class ResourceCreateError(ClusterException):
    """Raised when a cluster object could not be created."""

    def __init__(self, resource_name: str, message: str | None) -> None:
        super().__init__(
            f"Failed to create {resource_name}: {message or 'Unknown error'}"
        )
        self.resource_name = resource_name
        self.message = message


class AlreadyExistsError(ClusterException):
    """Raised when creating an object that already exists in the cluster."""


class ObjectNotFoundError(ClusterException):
    """Raised when an object is not found in the cluster."""


class ReadinessTimeoutError(LcrException):
    """Raised when a workload did not become ready before the deadline."""


class PortForwardTimeoutError(LcrException):
    """Raised when the local port-forward did not accept connections in time."""
