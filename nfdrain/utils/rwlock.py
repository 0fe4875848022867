"""
读写锁：允许多个读者并发，或一个写者独占

写者优先：一旦有写者在等待，新的读者会被阻塞，避免持续读取导致写者饥饿。

用法:
    lock = ReadWriteLock()

    with lock.read():
        value = snapshot.get(key)

    with lock.write():
        snapshot = new_snapshot
"""
import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """写者优先的读写锁"""

    def __init__(self) -> None:
        self._readers = 0
        self._writers_waiting = 0
        self._writer_active = False
        self._cond = threading.Condition(threading.Lock())

    @contextmanager
    def read(self) -> Iterator[None]:
        """获取读锁，有写者活动或等待时阻塞"""
        with self._cond:
            while self._writer_active or self._writers_waiting > 0:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """获取写锁，有读者或其他写者活动时阻塞"""
        with self._cond:
            self._writers_waiting += 1
            while self._writer_active or self._readers > 0:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer_active = True
        try:
            yield
        finally:
            with self._cond:
                self._writer_active = False
                self._cond.notify_all()
