"""
In-memory key-value store with the same interface as db.DB.
"""
from contextlib import contextmanager
from typing import Optional


class MemoryBatch:
    def __init__(self):
        self.ops = []

    def put(self, key: bytes, value: bytes):
        self.ops.append(('put', key, value))

    def delete(self, key: bytes):
        self.ops.append(('delete', key, None))


class MemoryDB:
    def __init__(self):
        self._data: dict[bytes, bytes] = {}
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        return self._data.get(key)

    def put(self, key: bytes, value: bytes):
        self._check_open()
        self._data[key] = value

    def delete(self, key: bytes):
        self._check_open()
        self._data.pop(key, None)

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    @contextmanager
    def write_batch(self):
        self._check_open()
        batch = MemoryBatch()
        yield batch
        for op, key, value in batch.ops:
            if op == 'put':
                self._data[key] = value
            else:
                self._data.pop(key, None)

    def close(self):
        self._closed = True

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
