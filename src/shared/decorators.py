from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from loguru import logger

from src.domain.errors import CarrierTransportError

P = ParamSpec("P")
R = TypeVar("R")


def log_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Log any exception escaping a carrier endpoint method, then re-raise it.

    One error line per failure, prefixed with the qualified method name. Carrier
    errors also carry the HTTP status reported by
    Shiprocket (``None`` for network failures and timeouts).

    Usage::

        @log_errors
        def assign_awb(self, shipment_id: str) -> dict: ...
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except CarrierTransportError as exc:
            logger.error(
                f"[{func.__qualname__}] {type(exc).__name__} "
                f"(status={exc.status_code}): {exc.message}"
            )
            raise
        except Exception as exc:
            logger.error(f"[{func.__qualname__}] {type(exc).__name__}: {exc}")
            raise

    return wrapper
