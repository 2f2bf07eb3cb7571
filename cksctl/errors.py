"""Exceptions raised by cksctl operations."""


class ProvisionError(Exception):
    """Base class for errors that stop a cksctl run."""
    pass


class PrivilegeError(ProvisionError):
    """Raised when a command is not run as root."""
    pass


class ConfigurationError(ProvisionError):
    """Raised when the configuration cannot be loaded or is invalid."""
    pass


class ClusterExistsError(ProvisionError):
    """Raised when a running cluster is found and the operator declines to keep it."""
    pass


class CommandError(ProvisionError):
    """Raised when an external command fails under the fatal policy."""

    def __init__(self, args, returncode, output=""):
        self.command = list(args)
        self.returncode = returncode
        self.output = output
        cmd = " ".join(self.command)
        message = f"Command failed ({returncode}): {cmd}"
        tail = output.strip().splitlines()[-5:] if output else []
        if tail:
            message += "\n" + "\n".join(tail)
        super().__init__(message)


class StepFailedError(ProvisionError):
    """Raised when a fatal step fails; the remaining steps are not run."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")
