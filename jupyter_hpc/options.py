from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from jupyter_hpc.config import Config
from jupyter_hpc.exceptions import OptionsError


class ServerType(str, Enum):
    NOTEBOOK = "notebook"
    JUPYTERLAB = "jupyterlab"

    @property
    def subcommand(self) -> str:
        """The `jupyter` subcommand that starts this server"""
        return "lab" if self is ServerType.JUPYTERLAB else "notebook"


class LaunchOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    partition: str | None = None
    notebook_dir: Path = Field(default_factory=Path.home)
    allocation: str | None = None
    batch_script: Path | None = None
    runtime_minutes: Annotated[int, Field(gt=0)] = 60
    server_type: ServerType | None = None
    verbose: bool = False

    @property
    def effective_server_type(self) -> ServerType:
        return self.server_type or ServerType.NOTEBOOK


def validate_options(options: LaunchOptions, config: Config) -> LaunchOptions:
    """Check flag combinations and paths, returning options with defaults filled in.

    Raises:
        OptionsError: If the options conflict or reference missing paths
    """
    if options.batch_script is not None and options.server_type is not None:
        raise OptionsError("A custom batch script (-b) cannot be combined with a server type (-s)")

    if options.partition == config.debug_partition and options.runtime_minutes > config.debug_max_minutes:
        raise OptionsError(
            f"Runtime on the {config.debug_partition} partition is limited to {config.debug_max_minutes} minutes "
            f"({options.runtime_minutes} requested)"
        )

    notebook_dir = options.notebook_dir.expanduser()
    if not notebook_dir.is_dir():
        raise OptionsError(f"Notebook directory does not exist: {notebook_dir}")
    # sbatch --export and qsub -v split on commas
    for label, path in (("Notebook directory", notebook_dir), ("Session directory", config.session_dir)):
        if "," in str(path):
            raise OptionsError(f"{label} cannot contain a comma: {path}")

    batch_script = options.batch_script
    if batch_script is not None:
        batch_script = batch_script.expanduser()
        if not batch_script.is_file():
            raise OptionsError(f"Batch script not found: {batch_script}")
        batch_script = batch_script.resolve()

    return options.model_copy(update={"notebook_dir": notebook_dir.resolve(), "batch_script": batch_script})
