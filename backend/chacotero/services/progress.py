"""
Progress reporting for long-running pipeline stages.

Callers pass a callback into each entry point; there is no global observer.
"""
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# (status, percent 0-100 or None, elapsed seconds or None)
ProgressCallback = Callable[[str, Optional[float], Optional[float]], None]


def report_progress(
    progress: Optional[ProgressCallback],
    status: str,
    percent: Optional[float] = None,
    elapsed: Optional[float] = None
) -> None:
    """Invoke `progress` if given; a failing observer never breaks the pipeline"""
    if progress is None:
        return
    try:
        progress(status, percent, elapsed)
    except Exception as e:
        logger.warning(f"Progress callback failed for status '{status}': {e}")
