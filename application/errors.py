import functools
import logging

from domain.exceptions import DomainError, InternalError

logger = logging.getLogger(__name__)


def translate_errors(func):
    """Surface anything that is not a domain error as an InternalError"""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except DomainError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure in %s", func.__qualname__)
            raise InternalError(str(exc)) from exc

    return wrapper
