# storyteller_meta/logconf.py
import datetime
import logging
import pathlib
import sys

FORMAT = "%(asctime)s | %(levelname)-5s | %(module)s | %(message)s"


def init(level: str = "INFO", log_dir: pathlib.Path | None = None):
    """Configure root logger once per run. Console only unless *log_dir* is given."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(
                log_dir / f"storyteller_meta_{datetime.date.today()}.log", encoding="utf-8"
            )
        )
    logging.basicConfig(
        level=getattr(logging, level.upper(), 20),
        format=FORMAT,
        handlers=handlers,
        force=True,
    )
