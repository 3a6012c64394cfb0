import logging
import os
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from modbus_exporter.util.logging_noise import quiet_pymodbus_logs

LOG_LEVEL_ENV = "MODBUS_EXPORTER_LOG_LEVEL"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ISO8601Formatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        dt: datetime = datetime.fromtimestamp(record.created)
        return dt.isoformat(timespec="seconds")


def resolve_log_level(level: str | int | None = None) -> int:
    """Map a level name (or the MODBUS_EXPORTER_LOG_LEVEL env var) to a logging level, INFO by default."""
    if isinstance(level, int):
        return level
    name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper().strip()
    return LOG_LEVEL_MAP.get(name, logging.INFO)


def setup_logging(
    log_level: str | int | None = None,
    log_to_file: bool = False,
    log_dir: str = "logs",
    log_base_filename: str = "modbus_exporter",
    when: str = "midnight",
    backup_count: int = 7,
    quiet_modbus: bool = True,
):
    formatter = ISO8601Formatter(fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_log_level(log_level))

    if not root_logger.handlers:
        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        # File handler (rotating daily)
        if log_to_file:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            file_path = f"{log_dir}/{log_base_filename}.log"

            rotating_handler = TimedRotatingFileHandler(
                filename=file_path,
                when=when,  # 'midnight' → rotate at 00:00
                interval=1,
                backupCount=backup_count,
                encoding="utf-8",
                utc=False,
            )
            rotating_handler.setFormatter(formatter)
            root_logger.addHandler(rotating_handler)

    if quiet_modbus:
        quiet_pymodbus_logs()
