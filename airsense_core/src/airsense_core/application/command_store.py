import copy
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from airsense_core.domain.errors import (
    AlreadyTerminalError,
    CommandNotFoundError,
    DuplicateCommandError,
)
from airsense_core.domain.models import Command, CommandStatus, new_id

log = logging.getLogger(__name__)


class CommandStore:
    """
    In-memory registry of commands, keyed by command id.

    The store is the only owner of Command records. Every method takes the
    same lock, and callers only ever receive detached snapshots, so a
    transition is a single compare-and-set: it succeeds for exactly one
    caller per command and every later caller gets AlreadyTerminalError.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_id,
    ):
        self._clock = clock
        self._id_factory = id_factory
        self._commands: Dict[str, Command] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._commands)

    def now(self) -> float:
        return self._clock()

    def create(
        self,
        device_id: str,
        action: str,
        params: Optional[Mapping[str, Any]],
        ttl: float,
    ) -> Command:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        command_id = self._id_factory()
        now = self._clock()
        command = Command(
            command_id=command_id,
            device_id=device_id,
            action=action,
            params=copy.deepcopy(dict(params or {})),
            status=CommandStatus.PENDING,
            created_at=now,
            updated_at=now,
            deadline=now + ttl,
        )
        with self._lock:
            if command_id in self._commands:
                raise DuplicateCommandError(command_id)
            self._commands[command_id] = command
        log.debug("Created command %s (%s) for device %s", command_id, action, device_id)
        return command.snapshot()

    def get(self, command_id: str) -> Command:
        with self._lock:
            command = self._commands.get(command_id)
        if command is None:
            raise CommandNotFoundError(command_id)
        return command.snapshot()

    def transition(
        self,
        command_id: str,
        new_status: CommandStatus,
        result: Any = None,
        reason: Optional[str] = None,
    ) -> Command:
        new_status = CommandStatus(new_status)
        if not new_status.is_terminal:
            raise ValueError(f"cannot transition a command to {new_status.value}")

        with self._lock:
            current = self._commands.get(command_id)
            if current is None:
                raise CommandNotFoundError(command_id)
            if current.is_terminal:
                raise AlreadyTerminalError(command_id, current.status)
            updated = replace(
                current,
                status=new_status,
                result=copy.deepcopy(result),
                reason=reason,
                updated_at=self._clock(),
            )
            self._commands[command_id] = updated

        log.debug("Command %s -> %s", command_id, new_status.value)
        return updated.snapshot()

    def list_expired(self, now: Optional[float] = None) -> List[Command]:
        """Pending commands whose deadline is at or before *now*."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [
                c for c in self._commands.values() if not c.is_terminal and c.deadline <= now
            ]
        return [c.snapshot() for c in expired]

    def list_evictable(self, retention: float, now: Optional[float] = None) -> List[str]:
        """Ids of terminal commands that reached their final state *retention* seconds ago."""
        now = self._clock() if now is None else now
        with self._lock:
            return [
                c.command_id
                for c in self._commands.values()
                if c.is_terminal and c.updated_at + retention <= now
            ]

    def evict(self, command_id: str) -> bool:
        """Drop a terminal command. Pending or unknown commands are left alone."""
        with self._lock:
            command = self._commands.get(command_id)
            if command is None or not command.is_terminal:
                return False
            del self._commands[command_id]
        log.debug("Evicted command %s", command_id)
        return True
