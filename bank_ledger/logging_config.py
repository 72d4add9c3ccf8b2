"""
Ledger Logging

Every ledger log line is one JSON object. Besides the usual level, logger
name and message, a line may carry the ledger context of the operation:

    user_id   staff member acting through a session
    action    operation name (DEPOSIT, CLOSE_ACCOUNT, ...)
    resource  account number, customer ID or interest period acted upon
    extra     free-form details (amounts, counts)

Pass them through ``extra=`` on any stdlib logging call, or use
``log_action`` which drops the empty ones.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


ROOT_LOGGER = "bank_ledger"

LEDGER_FIELDS = ("user_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """Render a record and its ledger context as a single JSON line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in LEDGER_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = ROOT_LOGGER,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Point the ledger's logger tree at one JSON handler.

    Calling it again replaces the previous handler, so the level or target
    file can be changed at runtime. Records do not propagate to the root
    logger.
    """
    logger = logging.getLogger(logger_name)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(logging.getLevelName(level.upper()))
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None) -> None:
    """Log `message` at `level` ("info", "warning", ...) with its ledger context"""
    context = dict(zip(LEDGER_FIELDS, (user_id, action, resource, extra)))
    logger.log(
        logging.getLevelName(level.upper()),
        message,
        extra={name: value for name, value in context.items() if value},
    )
