"""Batch scheduler adapters for Slurm and Torque.

Each scheduler is described by the binaries it shells out to and a set of
regular expressions applied to their output:

    job_id_re      - extracts the job id from the submit command's stdout
    pending_re     - matches the job state while it waits to run
    running_re     - matches the job state while it runs
    unknown_re     - matches output when the resource manager is not answering
"""

import logging
import re
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable

from jupyter_hpc.exceptions import NoSchedulerError, SubmissionError

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    UNKNOWN = "unknown"
    GONE = "gone"


COMMAND_TIMEOUT_SEC = 60


def run_command(cmd: list[str]) -> subprocess.CompletedProcess:
    logger.debug(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT_SEC)


def export_pairs(env: dict[str, str] | None) -> list[str]:
    """KEY=VALUE strings for the comma separated export lists of sbatch and qsub.

    Raises:
        SubmissionError: If a value contains a comma, which neither scheduler can escape
    """
    pairs = []
    for key, value in (env or {}).items():
        if "," in value:
            raise SubmissionError(f"Cannot pass {key} to the job, its value contains a comma: {value}")
        pairs.append(f"{key}={value}")
    return pairs


class Scheduler:
    name = ""
    submit_binary = ""
    query_binary = ""
    job_id_re = ""
    pending_re = ""
    running_re = ""
    unknown_re = ""

    def __init__(self, runner: Callable[[list[str]], subprocess.CompletedProcess] = run_command) -> None:
        self.runner = runner

    def submit_command(
        self,
        script: Path,
        runtime_minutes: int,
        allocation: str | None = None,
        partition: str | None = None,
        env: dict[str, str] | None = None,
    ) -> list[str]:
        raise NotImplementedError

    def query_command(self, job_id: str) -> list[str]:
        raise NotImplementedError

    def status_command(self, job_id: str) -> list[str]:
        """Command the user can run to check on the job"""
        return [self.query_binary, job_id]

    def status_hint(self, job_id: str) -> str:
        return " ".join(self.status_command(job_id))

    def parse_job_id(self, output: str) -> str | None:
        match = re.search(self.job_id_re, output, re.MULTILINE)
        if not match:
            return None
        return match.group(1)

    def submit(
        self,
        script: Path,
        runtime_minutes: int,
        allocation: str | None = None,
        partition: str | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        """Submit the batch script and return the job id.

        Raises:
            SubmissionError: If the command fails or prints no job id
        """
        cmd = self.submit_command(script, runtime_minutes, allocation, partition, env)
        try:
            result = self.runner(cmd)
        except OSError as e:
            raise SubmissionError(f"Unable to run {self.submit_binary}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise SubmissionError(f"{self.submit_binary} did not finish within {e.timeout} seconds") from e

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            raise SubmissionError(
                f"{self.submit_binary} exited with status {result.returncode}: {output.strip()}", output
            )

        job_id = self.parse_job_id(result.stdout or "")
        if job_id is None:
            raise SubmissionError(f"Unable to parse job id from {self.submit_binary} output: {output.strip()}", output)

        logger.debug(f"{self.name} accepted job {job_id}")
        return job_id

    def parse_state(self, output: str) -> str:
        return output.strip()

    def job_state(self, job_id: str) -> JobState:
        try:
            result = self.runner(self.query_command(job_id))
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Unable to run {self.query_binary}: {e}")
            return JobState.UNKNOWN

        output = (result.stdout or "") + (result.stderr or "")
        if self.unknown_re and re.search(self.unknown_re, output, re.MULTILINE):
            return JobState.UNKNOWN
        if result.returncode != 0:
            return JobState.GONE

        state = self.parse_state(result.stdout or "")
        if not state:
            return JobState.GONE
        if re.search(self.pending_re, state):
            return JobState.PENDING
        if re.search(self.running_re, state):
            return JobState.RUNNING
        return JobState.GONE

    def is_active(self, job_id: str) -> bool:
        """Whether the job may still need its config file"""
        return self.job_state(job_id) is not JobState.GONE


class SlurmScheduler(Scheduler):
    name = "slurm"
    submit_binary = "sbatch"
    query_binary = "squeue"
    # outputs line like "Submitted batch job 209"
    job_id_re = r"Submitted batch job (\d+)"
    # use long-form states: PENDING, CONFIGURING = pending
    #  RUNNING, COMPLETING, SUSPENDED = running
    pending_re = r"^(?:PENDING|CONFIGURING)"
    running_re = r"^(?:RUNNING|COMPLETING|SUSPENDED)"
    unknown_re = r"slurm_load_jobs error: (?:Socket timed out on send/recv|Unable to contact slurm controller)"

    def submit_command(self, script, runtime_minutes, allocation=None, partition=None, env=None):
        cmd = [self.submit_binary, f"--time={runtime_minutes}"]
        if allocation:
            cmd.append(f"--account={allocation}")
        if partition:
            cmd.append(f"--partition={partition}")
        exports = ["ALL"] + export_pairs(env)
        cmd.append(f"--export={','.join(exports)}")
        cmd.append(str(script))
        return cmd

    def query_command(self, job_id):
        return [self.query_binary, "-h", "-j", job_id, "-o", "%T"]

    def status_command(self, job_id):
        return [self.query_binary, "-j", job_id]


class TorqueScheduler(Scheduler):
    name = "torque"
    submit_binary = "qsub"
    query_binary = "qstat"
    # outputs line like "1234.server.example.edu"
    job_id_re = r"^\s*(\d+(?:\.\S+)?)\s*$"
    pending_re = r"^[QHWT]$"
    running_re = r"^[RE]$"
    unknown_re = r"(?:Communication failure|cannot connect to server)"

    def submit_command(self, script, runtime_minutes, allocation=None, partition=None, env=None):
        hours, minutes = divmod(runtime_minutes, 60)
        cmd = [self.submit_binary, "-l", f"walltime={hours:02d}:{minutes:02d}:00"]
        if allocation:
            cmd.extend(["-A", allocation])
        if partition:
            cmd.extend(["-q", partition])
        if env:
            cmd.extend(["-v", ",".join(export_pairs(env))])
        cmd.append(str(script))
        return cmd

    def query_command(self, job_id):
        return [self.query_binary, "-f", job_id]

    def parse_state(self, output):
        match = re.search(r"job_state\s*=\s*(\w)", output)
        return match.group(1) if match else ""


SCHEDULERS: dict[str, type[Scheduler]] = {
    SlurmScheduler.name: SlurmScheduler,
    TorqueScheduler.name: TorqueScheduler,
}


def detect_scheduler(which: Callable[[str], str | None] | None = None) -> Scheduler:
    """Pick the scheduler whose submit command is on PATH, Slurm first.

    Raises:
        NoSchedulerError: If neither sbatch nor qsub is available
    """
    which = which or shutil.which
    for scheduler_class in (SlurmScheduler, TorqueScheduler):
        path = which(scheduler_class.submit_binary)
        if path:
            logger.debug(f"Found {scheduler_class.submit_binary} at {path}")
            return scheduler_class()
    raise NoSchedulerError()


def get_scheduler(name: str) -> Scheduler:
    try:
        return SCHEDULERS[name]()
    except KeyError:
        raise ValueError(f"Unknown scheduler: {name}") from None
