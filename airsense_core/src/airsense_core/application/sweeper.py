import logging
import threading
from dataclasses import dataclass
from typing import Optional

from airsense_core.application.command_store import CommandStore
from airsense_core.domain.errors import AlreadyTerminalError, CommandNotFoundError
from airsense_core.domain.models import REASON_TIMEOUT, CommandStatus

log = logging.getLogger(__name__)


@dataclass
class SweepResult:
    expired: int = 0
    evicted: int = 0


class ExpirySweeper(threading.Thread):
    """Times out commands nobody answered and evicts settled ones after *retention*."""

    def __init__(self, store: CommandStore, interval_s: float = 2.0, retention_s: float = 300.0):
        super().__init__(name="command-sweeper", daemon=True)
        self.store = store
        self.interval_s = interval_s
        self.retention_s = retention_s
        self.s_stop = threading.Event()

    def stop(self) -> None:
        self.s_stop.set()

    def sweep_once(self, now: Optional[float] = None) -> SweepResult:
        now = self.store.now() if now is None else now
        result = SweepResult()

        for command in self.store.list_expired(now):
            try:
                self.store.transition(command.command_id, CommandStatus.ERROR, reason=REASON_TIMEOUT)
            except (AlreadyTerminalError, CommandNotFoundError):
                # a response landed first
                continue
            result.expired += 1
            log.info("Command %s to %s timed out", command.command_id, command.device_id)

        for command_id in self.store.list_evictable(self.retention_s, now):
            if self.store.evict(command_id):
                result.evicted += 1

        if result.expired or result.evicted:
            log.debug("Sweep: %d expired, %d evicted", result.expired, result.evicted)
        return result

    def run(self) -> None:
        log.info("Starting command sweeper (interval=%ss)", self.interval_s)
        while not self.s_stop.wait(self.interval_s):
            try:
                self.sweep_once()
            except Exception:
                log.exception("Command sweep failed")
        log.info("Command sweeper stopped")
