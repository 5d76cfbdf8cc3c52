"""
MQTT addressing for the device channel.

    <prefix>/devices/<device_id>/telemetry                        device -> backend
    <prefix>/devices/<device_id>/status                           device -> backend
    <prefix>/devices/<device_id>/commands                         backend -> device
    <prefix>/devices/<device_id>/commands/<command_id>/response   device -> backend

The response topic carries the command id so a response can be correlated
without looking at its payload.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.:\-]{1,128}$")


class TopicKind(str, Enum):
    TELEMETRY = "telemetry"
    STATUS = "status"
    COMMAND = "command"
    RESPONSE = "response"


@dataclass(frozen=True)
class TopicMatch:
    kind: TopicKind
    device_id: str
    command_id: Optional[str] = None


def is_valid_segment(value: Optional[str]) -> bool:
    return bool(value) and _SEGMENT_RE.match(value) is not None


@dataclass(frozen=True)
class TopicLayout:
    prefix: str = "airsense"

    def _device(self, device_id: str) -> str:
        return f"{self.prefix}/devices/{device_id}"

    def telemetry(self, device_id: str) -> str:
        return f"{self._device(device_id)}/telemetry"

    def status(self, device_id: str) -> str:
        return f"{self._device(device_id)}/status"

    def command(self, device_id: str) -> str:
        return f"{self._device(device_id)}/commands"

    def response(self, device_id: str, command_id: str) -> str:
        return f"{self._device(device_id)}/commands/{command_id}/response"

    def subscriptions(self) -> List[str]:
        """Wildcard filters the backend subscribes to."""
        return [
            self.telemetry("+"),
            self.status("+"),
            self.response("+", "+"),
        ]

    def parse(self, topic: str) -> Optional[TopicMatch]:
        """Classify *topic*; None if it is not part of this layout or has bad ids."""
        head = f"{self.prefix}/devices/"
        if not topic.startswith(head):
            return None
        parts = topic[len(head) :].split("/")
        device_id = parts[0]
        if not is_valid_segment(device_id):
            return None

        rest = parts[1:]
        if rest == ["telemetry"]:
            return TopicMatch(TopicKind.TELEMETRY, device_id)
        if rest == ["status"]:
            return TopicMatch(TopicKind.STATUS, device_id)
        if rest == ["commands"]:
            return TopicMatch(TopicKind.COMMAND, device_id)
        if len(rest) == 3 and rest[0] == "commands" and rest[2] == "response":
            if not is_valid_segment(rest[1]):
                return None
            return TopicMatch(TopicKind.RESPONSE, device_id, rest[1])
        return None
