from __future__ import annotations

import enum
import threading

from protols.exceptions import InvalidStateError


class ServerState(enum.IntEnum):
    CREATED = 0
    INITIALIZING = 1
    INITIALIZED = 2
    SHUTDOWN = 3


class ServerStateMachine:
    """Forward-only lifecycle of one server connection."""

    def __init__(self) -> None:
        self._state = ServerState.CREATED
        self._lock = threading.Lock()

    @property
    def state(self) -> ServerState:
        with self._lock:
            return self._state

    def begin_initialize(self) -> None:
        with self._lock:
            if self._state > ServerState.INITIALIZING:
                raise InvalidStateError("server already initialized", state=self._state.name)
            self._state = ServerState.INITIALIZING

    def finish_initialize(self) -> None:
        with self._lock:
            if self._state is not ServerState.INITIALIZING:
                raise InvalidStateError("server is not initializing", state=self._state.name)
            self._state = ServerState.INITIALIZED

    def begin_shutdown(self) -> None:
        with self._lock:
            if self._state < ServerState.INITIALIZED:
                raise InvalidStateError("server not initialized", state=self._state.name)
            self._state = ServerState.SHUTDOWN

    def require_initialized(self) -> None:
        with self._lock:
            if self._state is not ServerState.INITIALIZED:
                raise InvalidStateError(
                    f"request not allowed in state {self._state.name.lower()}",
                    state=self._state.name,
                )
