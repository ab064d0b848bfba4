import json
import logging
import logging.config
from pathlib import Path
from typing import Optional


def setup_logging(config_path: Optional[str | Path] = None) -> None:
    """
    Configure logging from a JSON dictConfig file.

    Falls back to a plain basicConfig when the file does not exist.

    :param config_path: Path to the logger config.
    """
    path = Path(config_path) if config_path else None
    if path is None or not path.exists():
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return

    with open(path, "r") as f:
        config = json.load(f)
    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
