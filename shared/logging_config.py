"""
Logging configuration for pNode monitor processes.

One call per process (API service, inspection script) so that every module's
`logging.getLogger(__name__)` output shares the same format and sinks.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers; kept at WARNING unless the process runs at DEBUG
NOISY_LOGGERS = ("urllib3", "uvicorn.access")


def resolve_level(level: Union[int, str]) -> int:
    """Accept either a logging constant or a level name such as 'debug'."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    component_name: str,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
):
    """
    Configure logging for a pNode monitor process.
    
    Args:
        component_name: Process identifier (e.g., 'monitor', 'inspect')
        level: Logging level, as a constant or a name (DEBUG, INFO, ...)
        log_file: Optional file path for log output
        format_string: Custom format string (default provided)
        quiet: Logger names held at WARNING when level is above DEBUG
    
    Returns:
        The component logger
    """
    level = resolve_level(level)
    if format_string is None:
        format_string = f'[%(asctime)s] [{component_name.upper()}] %(levelname)s - %(message)s'
    
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    
    # force=True: uvicorn may have configured the root logger already
    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    
    if level > logging.DEBUG:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)
    
    logger = logging.getLogger(component_name)
    logger.info(f"{component_name.upper()} logging initialized (level={logging.getLevelName(level)})")
    
    return logger
