"""Exception hierarchy for the installer.

Every fatal condition raises an ``InstallerError`` subclass. The CLI prints the
message and exits with a non-zero status; nothing is rolled back.
"""


class InstallerError(Exception):
    """Base class for all fatal installer errors."""


class PrivilegeError(InstallerError):
    """The installer was started without root privileges."""


class ConfigurationError(InstallerError):
    """The answers file could not be read or failed validation."""


class PrerequisiteError(InstallerError):
    """The host is not suitable for running the inference server."""


class UnsupportedOSError(PrerequisiteError):
    """The host is not running a supported distribution."""


class DriverMissingError(PrerequisiteError):
    """The NVIDIA driver query tool is not available."""


class InsufficientCapabilityError(PrerequisiteError):
    """The GPU compute capability is below the supported minimum."""

    def __init__(self, reported: str, minimum: str) -> None:
        self.reported = reported
        self.minimum = minimum
        super().__init__(
            f"Your GPU's compute capability is {reported}, but vLLM requires {minimum} or higher."
        )


class ProvisionError(InstallerError):
    """Provisioning of the account or runtime environment failed."""


class CommandFailedError(ProvisionError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command {' '.join(command)!r} failed with exit status {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)


class InstallVerificationFailedError(ProvisionError):
    """The installed package did not report a version."""


class ContextError(InstallerError):
    """Base class for provisioning context violations."""


class ContextConflictError(ContextError):
    """A stage tried to overwrite a context value without confirmation."""


class MissingContextValueError(ContextError):
    """A stage read a context value that no earlier stage wrote."""


class StagePlanError(InstallerError):
    """The stage sequence violates its declared reads or writes."""


class TemplateRenderError(InstallerError):
    """A generated artifact could not be fully resolved."""
