"""
Logging configuration for cleaner CLI output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses verbose HTTP request logs from web3 and urllib3
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger("__main__").setLevel(level)

    # Module loggers created by get_logger() carry their own handler and level
    for name in list(logging.root.manager.loggerDict):
        if name == "amm_arb" or name.startswith("amm_arb."):
            package_logger = logging.getLogger(name)
            package_logger.handlers.clear()
            package_logger.setLevel(level)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows per-hop quotes and retry decisions.
    """
    setup(level=logging.DEBUG)
