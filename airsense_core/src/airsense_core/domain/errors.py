class AirSenseError(Exception):
    """Base class for errors raised by the AirSense core."""


class ValidationError(AirSenseError):
    """Inbound data (telemetry, command request) failed validation."""


class NotFoundError(AirSenseError):
    pass


class DeviceNotFoundError(NotFoundError):
    def __init__(self, device_id: str):
        super().__init__(f"device {device_id!r} not found")
        self.device_id = device_id


class CommandNotFoundError(NotFoundError):
    def __init__(self, command_id: str):
        super().__init__(f"command {command_id!r} not found")
        self.command_id = command_id


class AlreadyTerminalError(AirSenseError):
    """A transition lost the race: the command already left ``pending``."""

    def __init__(self, command_id: str, status):
        super().__init__(f"command {command_id!r} is already {status.value}")
        self.command_id = command_id
        self.status = status


class DispatchError(AirSenseError):
    """The device channel could not accept a command."""


class DuplicateCommandError(AirSenseError):
    def __init__(self, command_id: str):
        super().__init__(f"command id {command_id!r} already in use")
        self.command_id = command_id
