"""Launch Jupyter sessions on HPC clusters behind a reverse-proxy service."""

__version__ = "0.1.0"
