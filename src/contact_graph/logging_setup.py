from __future__ import annotations

from logging.handlers import RotatingFileHandler
from pathlib import Path
import logging

from .config import CONFIG


def setup_logging(log_dir: str | None = None, level: str | None = None) -> logging.Logger:
    """Setup a simple, storage-friendly logging system.

    Policy:
    - Only operational steps are logged (INFO); dropped input data is a WARNING.
    - No dataset payloads are written to logs.
    - Single rotating file plus concise console output.
    """
    logs_dir = Path(log_dir or CONFIG.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_level = getattr(logging, (level or CONFIG.log_level).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    simple_formatter = logging.Formatter('%(asctime)s | %(levelname)-7s | %(message)s')

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(simple_formatter)
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        logs_dir / "contact_graph.log",
        maxBytes=2*1024*1024,  # 2MB
        backupCount=2,
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(simple_formatter)
    root.addHandler(file_handler)

    root.info(f"Logs directory: {logs_dir}")
    return root
