import logging
import re
import socket

from jupyter_hpc.config import ClusterConfig, Config
from jupyter_hpc.exceptions import ClusterDetectionError

logger = logging.getLogger(__name__)


def local_hostnames() -> list[str]:
    """Fully qualified and short hostname of this machine, without duplicates"""
    names = []
    for name in (socket.getfqdn(), socket.gethostname()):
        if name and name not in names:
            names.append(name)
    return names


def detect_cluster(config: Config, hostname: str | None = None) -> ClusterConfig:
    """Return the first configured cluster whose hostname pattern matches.

    Args:
        config: Site configuration
        hostname: Hostname to match; defaults to the names of this machine

    Raises:
        ClusterDetectionError: If no cluster matches
    """
    hostnames = [hostname] if hostname else local_hostnames()

    for cluster in config.clusters:
        for name in hostnames:
            if re.search(cluster.hostname_pattern, name):
                logger.debug(f"Hostname {name} matches cluster {cluster.name}")
                return cluster

    raise ClusterDetectionError(hostnames)
