"""Single-instance lock for launches sharing an install directory.

Steam may start a compatibility tool twice in quick succession.  The first
invocation to create the lock file wins; a second one either finds the lock
released after one short grace delay or exits without touching anything.
A lock whose recorded owner is no longer running is reclaimed.
"""

from __future__ import annotations

import logging
import os
import signal
import tempfile
import threading
import time
import uuid
from pathlib import Path
from types import FrameType
from typing import Callable

import psutil

from services.launch.constants import DEFAULT_GRACE_DELAY_SECONDS, LOCK_FILENAME
from services.launch.models import LaunchError, LaunchRejected

_LOGGER = logging.getLogger(__name__)

_TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def process_is_alive(pid: int) -> bool:
    """Return ``True`` when ``pid`` refers to a running, non-zombie process."""

    if pid <= 0 or not psutil.pid_exists(pid):
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True


def read_lock_owner(path: Path) -> int | None:
    """Return the PID recorded in the lock file at ``path``, if readable."""

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None
    if not lines:
        return None
    try:
        return int(lines[0].strip())
    except ValueError:
        return None


class LockHandle:
    """Ownership of the lock file; releases it when the scope ends.

    While held, SIGTERM and SIGHUP are turned into :class:`SystemExit` so the
    release in ``__exit__`` also runs when Steam stops the launch.
    """

    def __init__(self, path: Path, pid: int) -> None:
        self._path = path
        self._pid = pid
        self._released = False
        self._previous_handlers: dict[int, object] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        owner = read_lock_owner(self._path)
        if owner != self._pid:
            _LOGGER.warning(
                "Lock file %s is now owned by pid %s; leaving it in place", self._path, owner
            )
            return
        self._path.unlink(missing_ok=True)
        _LOGGER.debug("Released launch lock %s", self._path)

    def __enter__(self) -> "LockHandle":
        self._install_signal_handlers()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.release()
        finally:
            self._restore_signal_handlers()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in _TERMINATION_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, _raise_system_exit)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()


def _raise_system_exit(signum: int, frame: FrameType | None) -> None:
    _LOGGER.info("Received signal %s; shutting down", signum)
    raise SystemExit(128 + signum)


class LaunchGuard:
    """Admit at most one launch per install directory."""

    def __init__(
        self,
        *,
        grace_delay: float = DEFAULT_GRACE_DELAY_SECONDS,
        is_alive: Callable[[int], bool] = process_is_alive,
        sleep: Callable[[float], None] = time.sleep,
        pid: int | None = None,
    ) -> None:
        self._grace_delay = grace_delay
        self._is_alive = is_alive
        self._sleep = sleep
        self._pid = pid if pid is not None else os.getpid()

    def admit(self, install_directory: Path) -> LockHandle:
        """Acquire the lock for ``install_directory`` or raise :class:`LaunchRejected`."""

        install_directory = Path(install_directory)
        install_directory.mkdir(parents=True, exist_ok=True)
        lock_path = install_directory / LOCK_FILENAME

        handle = self._try_acquire(lock_path)
        if handle is None and self._grace_delay > 0:
            _LOGGER.info(
                "Launch lock %s is held by pid %s; checking again in %.1fs",
                lock_path,
                read_lock_owner(lock_path),
                self._grace_delay,
            )
            self._sleep(self._grace_delay)
            handle = self._try_acquire(lock_path)
        if handle is None:
            owner = read_lock_owner(lock_path)
            raise LaunchRejected(
                f"Another launch (pid {owner}) is already running for {install_directory}"
            )
        _LOGGER.debug("Acquired launch lock %s", lock_path)
        return handle

    def _try_acquire(self, lock_path: Path) -> LockHandle | None:
        for _ in range(2):
            if lock_path.exists():
                owner = read_lock_owner(lock_path)
                if owner is not None and self._is_alive(owner):
                    return None
                if not self._reclaim(lock_path, owner):
                    return None
            try:
                published = self._publish(lock_path)
            except OSError as exc:
                raise LaunchError(f"Unable to create launch lock {lock_path}: {exc}") from exc
            if published:
                return LockHandle(lock_path, self._pid)
        return None

    def _publish(self, lock_path: Path) -> bool:
        """Link a fully written lock file into place; ``False`` if one already exists."""

        fd, temp_name = tempfile.mkstemp(prefix=f"{lock_path.name}.", suffix=".tmp", dir=lock_path.parent)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(f"{self._pid}\n{time.time()}\n")
            os.chmod(temp_path, 0o644)
            try:
                os.link(temp_path, lock_path)
            except FileExistsError:
                _LOGGER.debug("Launch lock %s appeared while acquiring it", lock_path)
                return False
            return True
        finally:
            temp_path.unlink(missing_ok=True)

    def _reclaim(self, lock_path: Path, stale_owner: int | None) -> bool:
        """Move a stale lock aside; return ``False`` if a live owner took it meanwhile."""

        tombstone = lock_path.with_name(f"{lock_path.name}.stale-{uuid.uuid4().hex[:8]}")
        try:
            os.rename(lock_path, tombstone)
        except FileNotFoundError:
            return True
        except OSError as exc:
            raise LaunchError(f"Unable to reclaim stale launch lock {lock_path}: {exc}") from exc

        claimed_owner = read_lock_owner(tombstone)
        if claimed_owner is not None and claimed_owner != stale_owner and self._is_alive(claimed_owner):
            # The lock was re-created by a live launch before the rename.
            try:
                os.link(tombstone, lock_path)
            except FileExistsError:
                _LOGGER.debug("Launch lock %s was re-created concurrently", lock_path)
            tombstone.unlink(missing_ok=True)
            return False

        tombstone.unlink(missing_ok=True)
        _LOGGER.warning("Reclaimed stale launch lock left by pid %s", stale_owner)
        return True


__all__ = ["LaunchGuard", "LockHandle", "process_is_alive", "read_lock_owner"]
