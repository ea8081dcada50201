"""Detached watcher removing a session's notebook config once its job is gone.

Started by the launcher as `python -m jupyter_hpc.cleanup ...` in its own
session, so it outlives the terminal the user launched from.
"""

import logging
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable

import click

from jupyter_hpc.scheduler import SCHEDULERS, Scheduler, get_scheduler
from jupyter_hpc.session import remove_notebook_config

logger = logging.getLogger(__name__)


def watch_job(
    scheduler: Scheduler,
    job_id: str,
    config_path: Path,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll the scheduler until the job has left the queue, then delete the config file"""
    while scheduler.is_active(job_id):
        logger.debug(f"Job {job_id} still active, checking again in {interval}s")
        sleep(interval)

    logger.info(f"Job {job_id} finished, removing {config_path}")
    remove_notebook_config(config_path)


def watcher_log_path(config_path: Path) -> Path:
    return Path(f"{config_path}.cleanup.log")


def spawn_cleanup_watcher(scheduler: Scheduler, job_id: str, config_path: Path, interval: int) -> int:
    """Start the watcher as a detached process and return its PID"""
    cmd = [
        sys.executable,
        "-m",
        "jupyter_hpc.cleanup",
        "--scheduler",
        scheduler.name,
        "--job-id",
        job_id,
        "--interval",
        str(interval),
        str(config_path),
    ]
    with open(watcher_log_path(config_path), "a") as log_file:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    logger.debug(f"Started cleanup watcher (pid {proc.pid}) for job {job_id}")
    return proc.pid


@click.command()
@click.option("--scheduler", "scheduler_name", type=click.Choice(sorted(SCHEDULERS)), required=True)
@click.option("--job-id", required=True)
@click.option("--interval", type=click.IntRange(min=1), default=60, show_default=True)
@click.argument("config_path", type=click.Path(dir_okay=False, path_type=Path))
def main(scheduler_name: str, job_id: str, interval: int, config_path: Path):
    """Remove CONFIG_PATH once the scheduler no longer knows about JOB_ID"""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        watch_job(get_scheduler(scheduler_name), job_id, config_path, interval)
    except KeyboardInterrupt:
        logger.info("Interrupted, leaving %s in place", config_path)
        sys.exit(1)
    # The log is only useful while the watcher runs
    watcher_log_path(config_path).unlink(missing_ok=True)


if __name__ == "__main__":
    main()
