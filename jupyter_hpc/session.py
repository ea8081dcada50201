"""Notebook session secrets and the transient Jupyter configuration file"""

import logging
import os
import secrets
import tempfile
from dataclasses import dataclass
from pathlib import Path

from jupyter_hpc.config import ClusterConfig

logger = logging.getLogger(__name__)

SECRET_BYTES = 24
CONFIG_PREFIX = "jupyter_config_"

NOTEBOOK_CONFIG_TEMPLATE = """\
# Generated by jupyter-hpc; removed once the job finishes
c = get_config()  # noqa

c.ServerApp.token = {secret!r}
c.ServerApp.root_dir = {notebook_dir!r}
c.ServerApp.allow_origin = '*'
c.ServerApp.open_browser = False

c.NotebookApp.token = {secret!r}
c.NotebookApp.notebook_dir = {notebook_dir!r}
c.NotebookApp.allow_origin = '*'
c.NotebookApp.open_browser = False
"""


def generate_secret() -> str:
    """Random hex secret used as the notebook server token"""
    return secrets.token_hex(SECRET_BYTES)


def build_access_url(cluster: ClusterConfig, token: str, secret: str) -> str:
    return cluster.access_url.format(cluster=cluster.name, token=token, secret=secret)


@dataclass
class NotebookSession:
    cluster: ClusterConfig
    token: str
    secret: str
    notebook_dir: Path
    config_path: Path

    @property
    def access_url(self) -> str:
        return build_access_url(self.cluster, self.token, self.secret)


def render_notebook_config(secret: str, notebook_dir: Path) -> str:
    return NOTEBOOK_CONFIG_TEMPLATE.format(secret=secret, notebook_dir=str(notebook_dir))


def write_notebook_config(session_dir: Path, secret: str, notebook_dir: Path) -> Path:
    """Write a uniquely named, owner-only Jupyter config file and return its path"""
    session_dir = Path(session_dir).expanduser()
    session_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    fd, path = tempfile.mkstemp(prefix=CONFIG_PREFIX, suffix=".py", dir=session_dir)
    with os.fdopen(fd, "w") as f:
        f.write(render_notebook_config(secret, notebook_dir))

    logger.debug(f"Wrote notebook config to {path}")
    return Path(path)


def remove_notebook_config(config_path: Path) -> bool:
    """Delete the config file; returns False if it was already gone"""
    try:
        Path(config_path).unlink()
    except FileNotFoundError:
        logger.debug(f"Notebook config already removed: {config_path}")
        return False
    logger.debug(f"Removed notebook config {config_path}")
    return True
