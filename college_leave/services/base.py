import logging
from contextlib import contextmanager
from functools import wraps

from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from college_leave.core.config import settings
from college_leave.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# Driver failures that mean "the database is not reachable right now"
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def storage_retry(func):
    """
    Retry a whole unit of work on StorageUnavailableError with exponential backoff.
    Every other error is reported to the caller on the first attempt.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        retrying = Retrying(
            stop=stop_after_attempt(settings.storage.retry_attempts),
            wait=wait_exponential(
                multiplier=settings.storage.retry_backoff,
                max=settings.storage.retry_backoff_max,
            ),
            retry=retry_if_exception_type(StorageUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(func, *args, **kwargs)
    return wrapper


class BaseService:
    """Shared plumbing for services that work on one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=extra or None)

    @contextmanager
    def unit_of_work(self):
        """
        Commit on success, roll back on any failure.
        Transient driver errors surface as StorageUnavailableError.
        """
        try:
            yield self.db
            self.db.commit()
        except TRANSIENT_DB_ERRORS as e:
            self.db.rollback()
            self._logger.error(f"Storage failure, transaction rolled back: {e}")
            raise StorageUnavailableError() from e
        except DBAPIError as e:
            self.db.rollback()
            if e.connection_invalidated:
                raise StorageUnavailableError() from e
            raise
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def reading(self):
        """Read-only counterpart of unit_of_work: nothing to commit."""
        try:
            yield self.db
        except TRANSIENT_DB_ERRORS as e:
            self.db.rollback()
            raise StorageUnavailableError() from e
