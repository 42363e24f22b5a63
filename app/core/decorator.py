import logging
from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class DBException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _rollback(args):
    # Service methods carry their session on ``self.db``
    session = getattr(args[0], "db", None) if args else None
    if session is not None:
        session.rollback()


def db_exception(func):
    """Translate SQLAlchemy failures of a service method into DBException."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError:
            _rollback(args)
            raise DBException("Duplicate entry: already exists", 409)
        except SQLAlchemyError as e:
            _rollback(args)
            logger.error(f"{func.__qualname__} failed: {type(e).__name__}: {e}")
            raise DBException("Database error occurred", 500)

    return wrapper
