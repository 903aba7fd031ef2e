import threading
import weakref
from contextlib import contextmanager


class ExamLock:
    """A lock that the registry can hold weakly."""

    def __init__(self, exam_id):
        self.exam_id = exam_id
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._lock.release()


class ExamLockRegistry:
    """
    One lock per exam code so regenerations of the same exam never interleave.

    A lock lives only while someone holds a reference to it, so the registry
    does not grow with every exam code it has seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def __len__(self):
        return len(self._locks)

    def lock_for(self, exam_id):
        with self._guard:
            lock = self._locks.get(exam_id)
            if lock is None:
                lock = self._locks[exam_id] = ExamLock(exam_id)
            return lock

    @contextmanager
    def hold(self, exam_id):
        lock = self.lock_for(exam_id)
        with lock:
            yield


exam_locks = ExamLockRegistry()
