"""Release state persistence."""

import fcntl
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from relctl.core.exceptions import StateError
from relctl.core.logging import StructuredLogger
from relctl.release.models import ReleaseState

logger = StructuredLogger(__name__)


class ReleaseStateStore:
    """Manage release state persistence, one JSON record per namespace/service."""

    # Shared across store instances so every writer in the process serializes
    # on the same state file.
    _locks: dict[str, "_ServiceLock"] = {}
    _locks_guard = threading.Lock()

    def __init__(self, state_dir: str | Path | None = None):
        """Initialize release state store.

        Args:
            state_dir: Directory to store release state
        """
        if state_dir:
            self._state_dir = Path(state_dir)
        else:
            self._state_dir = Path.home() / ".relctl" / "state"

        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateError(f"Cannot create state directory {self._state_dir}: {e}")

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def _state_file(self, namespace: str, service: str) -> Path:
        return self._state_dir / f"{namespace}__{service}.json"

    def _lock_file(self, namespace: str, service: str) -> Path:
        return self._state_dir / f"{namespace}__{service}.lock"

    @contextmanager
    def lock(self, namespace: str, service: str) -> Iterator[None]:
        """Critical section for read-decide-apply-persist on one service.

        Threads of one process queue on a re-entrant lock; separate
        processes (two CI jobs sharing a state directory) queue on an
        exclusive flock of the service's lock file.
        """
        lock_file = self._lock_file(namespace, service)
        key = str(lock_file.resolve())
        with self._locks_guard:
            lock = self._locks.setdefault(key, _ServiceLock(lock_file))
        with lock:
            yield

    def load(self, namespace: str, service: str, create: bool = True) -> ReleaseState:
        """Load release state, creating the default record on first use.

        Args:
            namespace: Namespace of the managed service
            service: Service name
            create: Persist the default record if none exists yet

        Returns:
            Loaded ReleaseState
        """
        state_file = self._state_file(namespace, service)

        if not state_file.exists():
            state = ReleaseState(service=service, namespace=namespace)
            if not create:
                return state
            self.save(state)
            logger.info("Initialized release state", service=service, namespace=namespace)
            return state

        try:
            with open(state_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateError(f"Failed to load release state: {e}", details={"file": str(state_file)})

        return ReleaseState.from_dict(data)

    def save(self, state: ReleaseState) -> None:
        """Save release state atomically.

        Args:
            state: ReleaseState to save
        """
        state.validate()
        state_file = self._state_file(state.namespace, state.service)

        try:
            fd, tmp_path = tempfile.mkstemp(dir=self._state_dir, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(state.to_dict(), f, indent=2)
                os.replace(tmp_path, state_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StateError(f"Failed to save release state: {e}", details={"file": str(state_file)})

        logger.debug("Saved release state", service=state.service, namespace=state.namespace)


class _ServiceLock:
    """Re-entrant thread lock that also holds a flock while owned."""

    def __init__(self, path: Path):
        self._path = path
        self._rlock = threading.RLock()
        self._depth = 0
        self._fd: int | None = None

    def __enter__(self) -> "_ServiceLock":
        self._rlock.acquire()
        if self._depth == 0:
            try:
                self._fd = self._flock()
            except OSError as e:
                self._rlock.release()
                raise StateError(f"Cannot lock release state: {e}", details={"file": str(self._path)})
        self._depth += 1
        return self

    def __exit__(self, *exc_info) -> None:
        self._depth -= 1
        if self._depth == 0 and self._fd is not None:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
            os.close(self._fd)
            self._fd = None
        self._rlock.release()

    def _flock(self) -> int:
        fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError:
            os.close(fd)
            raise
        return fd
