"""
Relays the run result file to standard output for the n8n workflow.
"""

import sys
from pathlib import Path
from typing import Optional, TextIO

from ..utils.logger import get_logger

logger = get_logger("n8n_reporter")


def relay_result(result_path, stream: Optional[TextIO] = None) -> bool:
    """
    Copy the result file's contents to the output stream.

    A missing or empty file produces no output.

    Args:
        result_path: Result JSON file
        stream: Output stream, defaults to stdout

    Returns:
        True if anything was written
    """
    path = Path(result_path)
    if not path.exists():
        logger.debug(f"No result file at {path}")
        return False

    contents = path.read_text(encoding='utf-8').strip()
    if not contents:
        return False

    out = stream or sys.stdout
    out.write(f"{contents}\n")
    out.flush()
    return True
