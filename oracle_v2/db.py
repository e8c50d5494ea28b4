"""
LevelDB-backed key-value store for committee keys, price slots, consistency
windows and the replay guard.
"""
import plyvel
import logging
from typing import Optional
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class DB:
    """Thin plyvel wrapper with the same surface as MemoryDB."""

    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 4 * 1024 * 1024,
                 max_open_files: int = 1000,
                 compression: Optional[str] = 'snappy'):
        self.path = db_path
        self._closed = True
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
                compression=compression,
            )
        except plyvel.Error as e:
            logger.error(f"Cannot open price store at {db_path}: {e}")
            raise
        self._closed = False
        logger.info(f"Price store opened at {db_path}")

    @contextmanager
    def _op(self, action: str, key: bytes = None):
        """Guards a single plyvel call: refuses a closed store, logs failures."""
        if self._closed:
            raise RuntimeError(f"Price store at {self.path} is closed")
        try:
            yield
        except plyvel.Error as e:
            target = f" {key!r}" if key is not None else ""
            logger.error(f"{action}{target} failed on {self.path}: {e}")
            raise

    def get(self, key: bytes) -> Optional[bytes]:
        with self._op("get", key):
            return self._db.get(key)

    def put(self, key: bytes, value: bytes):
        with self._op("put", key):
            self._db.put(key, value)

    def delete(self, key: bytes):
        with self._op("delete", key):
            self._db.delete(key)

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    @contextmanager
    def write_batch(self):
        """
        Transactional batch. Writes land on a clean exit; an exception
        inside the block drops every staged put and delete.
        """
        with self._op("batch"):
            batch = self._db.write_batch(transaction=True)
        yield batch
        with self._op("batch write"):
            batch.write()

    def close(self):
        if self._closed:
            return
        self._db.close()
        self._closed = True
        logger.info(f"Price store at {self.path} closed")

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
