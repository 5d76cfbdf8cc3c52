import json
import logging
from typing import Any, Optional, Union

from airsense_core.application.correlator import CommandCorrelator
from airsense_core.domain.models import Command, CommandStatus
from airsense_core.domain.topics import TopicKind, TopicLayout

log = logging.getLogger(__name__)


class ResponseMatcher:
    """
    Routes device response messages to the correlator.

    The command id comes from the topic, never from the payload. Anything
    that cannot be correlated is logged and dropped; nothing here raises
    for a bad message.
    """

    def __init__(self, correlator: CommandCorrelator, topics: TopicLayout):
        self.correlator = correlator
        self.topics = topics

    def handle(self, topic: str, payload: Union[bytes, str, dict]) -> Optional[Command]:
        match = self.topics.parse(topic)
        if match is None or match.kind is not TopicKind.RESPONSE or match.command_id is None:
            log.warning("Discarding response on uncorrelatable topic %s", topic)
            return None

        body = self._decode(payload)
        if body is None:
            log.warning("Discarding malformed response payload on %s", topic)
            return None

        claimed_id = body.get("commandID")
        if claimed_id is not None and claimed_id != match.command_id:
            log.warning(
                "Discarding response on %s: payload commandID %r does not match topic",
                topic,
                claimed_id,
            )
            return None

        try:
            status = CommandStatus(body.get("status"))
        except ValueError:
            status = None
        if status is None or not status.is_terminal:
            log.warning("Discarding response on %s with status %r", topic, body.get("status"))
            return None

        return self.correlator.resolve(
            match.command_id,
            status,
            result=body.get("result"),
            device_id=match.device_id,
        )

    @staticmethod
    def _decode(payload: Union[bytes, str, dict]) -> Optional[dict]:
        if isinstance(payload, dict):
            return payload
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            body: Any = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            return None
        return body if isinstance(body, dict) else None
