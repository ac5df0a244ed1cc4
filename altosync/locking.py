# altosync/locking.py
import fcntl
import os
from contextlib import contextmanager

from .errors import LockHeldError


@contextmanager
def exclusive_lock(lock_path: str):
    """Hold a non-blocking exclusive flock on ``lock_path`` or raise LockHeldError."""
    directory = os.path.dirname(os.path.abspath(lock_path))
    os.makedirs(directory, exist_ok=True)
    fd = os.open(lock_path, os.O_CREAT | os.O_RDWR)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        raise LockHeldError(f"another run holds {lock_path}")

    try:
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode("ascii"))
        yield
    finally:
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
