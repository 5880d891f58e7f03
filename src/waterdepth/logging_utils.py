"""
Logging setup for the pipeline's entry points.

Library modules only do

    import logging
    logger = logging.getLogger(__name__)

and never call logging.basicConfig(). The CLI calls setup_logging() once.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    quiet_libraries: bool = True
) -> None:
    """
    Configure logging for an entry-point script.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to also write logs to
        format_string: Optional custom format string
        quiet_libraries: Keep urllib3 connection chatter at WARNING
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True
    )

    if quiet_libraries:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
