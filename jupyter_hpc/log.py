import logging

import colorlog


def setup_logging(debug: bool = False):
    """Configure colored logging with the specified level"""
    log_level = logging.DEBUG if debug else logging.INFO

    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            fmt="%(log_color)s%(levelname)-8s%(reset)s %(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root = logging.getLogger("jupyter_hpc")
    root.handlers.clear()
    root.addHandler(handler)
    root.propagate = False
    root.setLevel(log_level)
    return root
