import logging
from typing import Any, Callable, Mapping, Optional

from airsense_core.application.command_store import CommandStore
from airsense_core.application.manage_devices import require_device
from airsense_core.domain.errors import (
    AlreadyTerminalError,
    CommandNotFoundError,
    DeviceNotFoundError,
    DispatchError,
    ValidationError,
)
from airsense_core.domain.models import REASON_DISPATCH_FAILED, Command, CommandStatus
from airsense_core.domain.ports import DeviceChannel, UnitOfWork

log = logging.getLogger(__name__)


class CommandCorrelator:
    """
    Lifecycle of a device command: create, publish, resolve.

    ``dispatch`` never waits for the device. The caller gets the pending
    command back straight away and polls ``get`` until a response or the
    sweeper settles it.
    """

    def __init__(
        self,
        store: CommandStore,
        channel: DeviceChannel,
        uow_factory: Callable[[], UnitOfWork],
        command_ttl: float = 30.0,
    ):
        self.store = store
        self.channel = channel
        self.uow_factory = uow_factory
        self.command_ttl = command_ttl

    def dispatch(
        self,
        device_id: str,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Command:
        """
        Send *action* to *device_id* and return the new command.

        Raises DeviceNotFoundError if the device is unknown or not owned by
        *user_id*. If the device channel refuses the publish the command is
        returned already in ``error`` with reason ``dispatch_failed``.
        """
        if not isinstance(action, str) or not action.strip():
            raise ValidationError("action is required")
        if params is not None and not isinstance(params, Mapping):
            raise ValidationError("params must be an object")

        require_device(device_id, user_id, self.uow_factory())

        command = self.store.create(device_id, action.strip(), params, self.command_ttl)
        try:
            self.channel.publish_command(command)
        except DispatchError as exc:
            log.warning("Dispatch of command %s to %s failed: %s", command.command_id, device_id, exc)
            try:
                return self.store.transition(
                    command.command_id,
                    CommandStatus.ERROR,
                    result={"detail": str(exc)},
                    reason=REASON_DISPATCH_FAILED,
                )
            except AlreadyTerminalError:
                # only possible with a ttl shorter than the publish attempt
                return self.store.get(command.command_id)

        log.info("Dispatched command %s (%s) to %s", command.command_id, command.action, device_id)
        return command

    def get(self, command_id: str, user_id: Optional[str] = None) -> Command:
        """
        Current state of *command_id*. With *user_id* set, a command addressed
        to a device that user does not own is reported as not found.
        """
        command = self.store.get(command_id)
        if user_id is not None:
            try:
                require_device(command.device_id, user_id, self.uow_factory())
            except DeviceNotFoundError:
                raise CommandNotFoundError(command_id) from None
        return command

    def resolve(
        self,
        command_id: str,
        status: CommandStatus,
        result: Any = None,
        device_id: Optional[str] = None,
    ) -> Optional[Command]:
        """
        Apply a device response. Returns the settled command, or None when the
        response is discarded (unknown command, wrong device, already terminal).
        """
        status = CommandStatus(status)
        if not status.is_terminal:
            raise ValidationError("a response must report success or error")

        try:
            if device_id is not None and self.store.get(command_id).device_id != device_id:
                log.warning("Discarding response for %s from non-owning device %s", command_id, device_id)
                return None
            command = self.store.transition(command_id, status, result=result)
        except CommandNotFoundError:
            log.warning("Discarding response for unknown command %s", command_id)
            return None
        except AlreadyTerminalError as exc:
            log.info("Discarding late response for command %s (already %s)", command_id, exc.status.value)
            return None

        log.info("Command %s resolved as %s", command_id, status.value)
        return command
