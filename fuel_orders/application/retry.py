# fuel_orders/application/retry.py
import logging
import random
import time
from typing import Callable, TypeVar

from fuel_orders.domain.errors import BackendUnavailable

logger = logging.getLogger(__name__)

T = TypeVar('T')


def call_with_retry(fn: Callable[[int], T], max_attempts: int = 3, base_delay: float = 0.5,
                    sleep: Callable[[float], None] = time.sleep) -> T:
    """
    Ejecuta fn(attempt) reintentando solo ante BackendUnavailable,
    con backoff exponencial más jitter. Cualquier otro error sale inmediatamente.
    """
    max_attempts = max(1, int(max_attempts))
    for attempt in range(max_attempts):
        try:
            return fn(attempt)
        except BackendUnavailable as e:
            if attempt < max_attempts - 1:
                delay = base_delay * (2 ** attempt) + (random.random() * 0.5)
                logger.warning(f"Backend no disponible - Intento {attempt + 1}: {e}. Reintentando en {delay:.2f}s...")
                sleep(delay)
            else:
                logger.error(f"Backend no disponible después de {max_attempts} intentos. Error final: {e}")
                raise
