import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

import click

from jupyter_hpc.cleanup import spawn_cleanup_watcher
from jupyter_hpc.cluster import detect_cluster
from jupyter_hpc.config import Config
from jupyter_hpc.exceptions import LauncherError
from jupyter_hpc.options import LaunchOptions
from jupyter_hpc.proxy_client import ProxyClient
from jupyter_hpc.scheduler import Scheduler, detect_scheduler
from jupyter_hpc.session import NotebookSession, generate_secret, remove_notebook_config, write_notebook_config

logger = logging.getLogger(__name__)


@dataclass
class LaunchResult:
    session: NotebookSession
    scheduler: Scheduler
    command: list[str]
    job_id: str | None = None
    watcher_pid: int | None = None


def default_batch_script() -> Path:
    return Path(str(resources.files("jupyter_hpc") / "batch" / "jupyter.sh"))


def job_environment(options: LaunchOptions, session: NotebookSession) -> dict[str, str]:
    """Variables the batch script needs to start the server"""
    return {
        "JUPYTER_HPC_CONFIG_FILE": str(session.config_path),
        "JUPYTER_HPC_SERVER": options.effective_server_type.subcommand,
        "JUPYTER_HPC_NOTEBOOK_DIR": str(session.notebook_dir),
        "JUPYTER_HPC_PROXY_TOKEN": session.token,
    }


def start_session(options: LaunchOptions, config: Config, hostname: str | None = None) -> NotebookSession:
    """Detect the cluster, fetch the proxy token and write the notebook config"""
    cluster = detect_cluster(config, hostname)
    logger.info(f"Cluster: {cluster.name}")

    client = ProxyClient(cluster, timeout=config.conn_timeout_sec, verify=config.validate_https_certs)
    token = client.fetch_token()
    logger.debug(f"Received proxy token {token}")

    secret = generate_secret()
    config_path = write_notebook_config(config.session_dir, secret, options.notebook_dir)

    return NotebookSession(
        cluster=cluster,
        token=token,
        secret=secret,
        notebook_dir=options.notebook_dir,
        config_path=config_path,
    )


def launch(
    options: LaunchOptions,
    config: Config,
    hostname: str | None = None,
    dry_run: bool = False,
    scheduler: Scheduler | None = None,
) -> LaunchResult:
    """Bootstrap a notebook session and submit it as a batch job.

    Args:
        options: Validated launch options
        config: Site configuration
        hostname: Override for cluster detection
        dry_run: Print the submit command instead of running it
        scheduler: Scheduler to use; detected from PATH when omitted

    Raises:
        LauncherError: On any failure; the notebook config is removed whenever launching does not complete
    """
    scheduler = scheduler or detect_scheduler()
    logger.debug(f"Scheduler: {scheduler.name}")

    session = start_session(options, config, hostname)
    try:
        return _submit_session(options, config, session, scheduler, dry_run)
    except BaseException:
        remove_notebook_config(session.config_path)
        raise


def _submit_session(
    options: LaunchOptions, config: Config, session: NotebookSession, scheduler: Scheduler, dry_run: bool
) -> LaunchResult:
    script = options.batch_script or default_batch_script()
    env = job_environment(options, session)

    command = scheduler.submit_command(script, options.runtime_minutes, options.allocation, options.partition, env)
    result = LaunchResult(session=session, scheduler=scheduler, command=command)

    click.echo(f"Access URL: {session.access_url}")

    if dry_run:
        click.echo(f"Dry run, not submitting: {' '.join(command)}")
        remove_notebook_config(session.config_path)
        return result

    result.job_id = scheduler.submit(script, options.runtime_minutes, options.allocation, options.partition, env)
    click.echo(f"Submitted job {result.job_id}")
    click.echo(f"Check its status with: {scheduler.status_hint(result.job_id)}")

    try:
        result.watcher_pid = spawn_cleanup_watcher(
            scheduler, result.job_id, session.config_path, config.cleanup_interval_sec
        )
    except OSError as e:
        raise LauncherError(f"Unable to start the cleanup watcher for job {result.job_id}: {e}") from e
    return result
