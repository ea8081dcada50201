import sys
from pathlib import Path

import click

from jupyter_hpc.config import Config, resolve_config, resolve_config_path
from jupyter_hpc.exceptions import ConfigError, LauncherError
from jupyter_hpc.launch import launch
from jupyter_hpc.log import setup_logging
from jupyter_hpc.options import LaunchOptions, ServerType, validate_options


def show_config(config: str | None) -> None:
    path = resolve_config_path(config)
    try:
        with open(path) as f:
            click.echo(f.read())
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e


def build_options(
    cfg: Config,
    partition: str | None,
    directory: Path | None,
    allocation: str | None,
    batch_script: Path | None,
    runtime: int | None,
    server: str | None,
    info: bool,
) -> LaunchOptions:
    options = LaunchOptions(
        partition=partition,
        notebook_dir=directory or Path.home(),
        allocation=allocation,
        batch_script=batch_script,
        runtime_minutes=runtime if runtime is not None else cfg.default_runtime_minutes,
        server_type=ServerType(server) if server else None,
        verbose=info,
    )
    return validate_options(options, cfg)


class LauncherCommand(click.Command):
    """Command whose usage errors exit with status 1 like every other failure"""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise


@click.command(
    cls=LauncherCommand,
    context_settings={"max_content_width": 120, "help_option_names": ["-h", "-?", "--help"]},
)
@click.option("-p", "--partition", default=None, help="Partition (queue) to run the job in")
@click.option(
    "-d",
    "--directory",
    type=click.Path(path_type=Path),
    default=None,
    help="Notebook root directory [default: home directory]",
)
@click.option("-A", "--allocation", default=None, help="Allocation (project) to charge the job to")
@click.option(
    "-b",
    "--batch-script",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Custom batch script to submit (cannot be combined with -s)",
)
@click.option(
    "-t",
    "--time",
    "runtime",
    type=click.IntRange(min=1),
    default=None,
    help="Runtime in minutes [default: from site configuration]",
)
@click.option(
    "-s",
    "--server",
    type=click.Choice([t.value for t in ServerType]),
    default=None,
    help="Server to start: notebook or jupyterlab [default: notebook] (cannot be combined with -b)",
)
@click.option("-i", "--info", is_flag=True, default=False, help="Print verbose information")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    default=None,
    help="Path to YAML site config file [default: $JUPYTER_HPC_CONFIG or bundled settings]",
)
@click.option("--dry-run", is_flag=True, help="Print the submit command instead of submitting the job")
@click.option("--showconfig", is_flag=True, help="Display the active site configuration and exit")
def cli(
    partition: str | None,
    directory: Path | None,
    allocation: str | None,
    batch_script: Path | None,
    runtime: int | None,
    server: str | None,
    info: bool,
    config: str | None,
    dry_run: bool,
    showconfig: bool,
):
    """Launch a Jupyter notebook or JupyterLab session as a batch job and print its URL"""

    logger = setup_logging(info)
    try:
        if showconfig:
            show_config(config)
            return

        cfg = resolve_config(config)
        options = build_options(cfg, partition, directory, allocation, batch_script, runtime, server, info)

        logger.debug(f"Partition:     {options.partition or '(scheduler default)'}")
        logger.debug(f"Directory:     {options.notebook_dir}")
        logger.debug(f"Allocation:    {options.allocation or '(none)'}")
        logger.debug(f"Batch script:  {options.batch_script or '(default)'}")
        logger.debug(f"Runtime:       {options.runtime_minutes} minutes")
        logger.debug(f"Server:        {options.effective_server_type.value}")

        launch(options, cfg, dry_run=dry_run)
    except LauncherError as e:
        if info:
            logger.exception(str(e))
        else:
            logger.error(str(e))
        sys.exit(1)


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == "__main__":
    main()
