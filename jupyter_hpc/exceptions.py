"""Custom exceptions for launching notebook sessions."""


class LauncherError(Exception):
    """Base exception for all launch failures reported to the user."""

    pass


class ConfigError(LauncherError):
    """Raised when the site configuration cannot be loaded or is invalid."""

    pass


class OptionsError(LauncherError):
    """Raised when command-line options are invalid or conflict."""

    pass


class ClusterDetectionError(LauncherError):
    """Raised when the current host does not belong to a configured cluster."""

    def __init__(self, hostnames: list[str]) -> None:
        super().__init__(f"Unable to determine cluster from hostname: {', '.join(hostnames)}")
        self.hostnames = hostnames


class TokenFetchError(LauncherError):
    """Raised when the reverse proxy does not hand out an access token."""

    pass


class NoSchedulerError(LauncherError):
    """Raised when neither Slurm nor Torque commands are available."""

    def __init__(self) -> None:
        super().__init__("No supported scheduler found (looked for sbatch and qsub)")


class SubmissionError(LauncherError):
    """Raised when the scheduler rejects or fails to report a submitted job."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output
