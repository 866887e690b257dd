"""File-based debug logging setup."""

from __future__ import annotations

import logging
from pathlib import Path


def setup_file_logging(log_path: Path) -> None:
    """Configure file-based debug logging for the ``meetnote`` logger tree."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
    root = logging.getLogger('meetnote')
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    logging.getLogger('meetnote.cli').info('Debug logging started → %s', log_path)
