"""Custom exceptions for resourcestore.

Import and publish failures are raised to the caller. Deletion and unpublish
are fail-soft and report a boolean instead, so nothing here is raised from
those paths.
"""


class ResourceStoreError(RuntimeError):
    """Base class for all resourcestore errors."""
    pass


# Configuration Errors
class ConfigurationError(ResourceStoreError):
    """Missing or invalid driver / storage / target options."""
    pass


class MissingOptionError(ConfigurationError):
    """A driver was configured without one of its required options."""

    def __init__(self, driver: str, option: str):
        self.driver = driver
        self.option = option
        super().__init__(
            f"The {driver} connection needs the \"{option}\" option to be set."
        )


class UnknownDriverError(ConfigurationError):
    """No constructor is registered for a driver name."""

    def __init__(self, driver: str, known: list):
        self.driver = driver
        super().__init__(
            f"Unknown storage driver '{driver}'. "
            f"Available drivers: {', '.join(sorted(known))}"
        )


# Addressing Errors
class InvalidHashError(ResourceStoreError, ValueError):
    """Content hash is not a 40 character lowercase hex SHA-1."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid sha1 hex (must be 40 hex chars): {value!r}")


class InvalidPathError(ResourceStoreError, ValueError):
    """Publication name or path would leave its directory."""

    def __init__(self, value: str, reason: str):
        self.value = value
        super().__init__(f"Invalid publication path {value!r}: {reason}")


# Operational Errors
class BackendUnavailable(ResourceStoreError):
    """Connection-level failure talking to a backend."""
    pass


class ResourceImportError(ResourceStoreError):
    """Staging or backend write failure while importing a resource."""
    pass


class PublishError(ResourceStoreError):
    """Backend write failure while publishing a resource."""
    pass


class CollectionPublishError(PublishError):
    """One or more members of a collection could not be published."""

    def __init__(self, failures: list):
        self.failures = failures
        names = ", ".join(
            obj.display_name or obj.content_hash for obj, _ in failures[:3]
        )
        if len(failures) > 3:
            names += f" and {len(failures) - 3} more"
        super().__init__(
            f"Failed to publish {len(failures)} collection member(s): {names}"
        )
