import logging
import threading

logger = logging.getLogger(__name__)


class KeyPairStore:
    """Holds the single current key pair.

    Reads and writes are serialised on one lock. Nothing slow happens
    while the lock is held, so ``get`` and ``has`` stay responsive while a
    key is being generated elsewhere.
    """

    def __init__(self, record=None):
        self._lock = threading.RLock()
        self._record = record

    def set(self, record):
        if record is None:
            raise ValueError("Use clear() to drop the current key pair")
        with self._lock:
            self._record = record
        logger.info("Current key pair set to %s", record.metadata.key_id)

    def get(self):
        with self._lock:
            return self._record

    def clear(self):
        with self._lock:
            self._record = None
        logger.info("Current key pair cleared")

    def has(self):
        return self.get() is not None
