import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Correlation ID of the HTTP request being served, set by CorrelationIdMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Loggers that are too chatty at INFO for a leave service
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "sqlalchemy.pool")


class LeaveJsonFormatter(jsonlogger.JsonFormatter):
    """
    One JSON object per record: timestamp, level, logger name, message,
    the request correlation id and the deployment environment.
    Anything passed through ``extra=`` (leave_request_id, actor_role, ...)
    is merged in by the base formatter.
    """

    def __init__(self, *args, environment: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()

        log_record["level"] = (log_record.get("level") or record.levelname).upper()
        if self.environment:
            log_record["environment"] = self.environment


def setup_logging(level: str = "INFO", environment: Optional[str] = None):
    root = logging.getLogger()
    # Importing the app twice (tests, reload) must not stack handlers
    if any(isinstance(h.formatter, LeaveJsonFormatter) for h in root.handlers):
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(LeaveJsonFormatter("%(timestamp) %(level) %(name) %(message)", environment=environment))
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
