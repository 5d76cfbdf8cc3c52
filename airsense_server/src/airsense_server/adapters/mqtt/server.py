import json
import logging
import threading
from collections import Counter
from typing import Callable, Optional

import paho.mqtt.client as mqtt
from airsense_core.application import ResponseMatcher, TelemetryValidator, ingest_reading
from airsense_core.domain.errors import ValidationError
from airsense_core.domain.ports import UnitOfWork
from airsense_core.domain.topics import TopicKind, TopicLayout

from airsense_server.adapters.mqtt.publisher import reason_code_int

log = logging.getLogger(__name__)


class DeviceMessageRouter:
    """
    Routes inbound device messages by topic: telemetry to ingestion,
    responses to the ResponseMatcher, status to the log.

    ``route`` never raises; a broken message is logged, counted and dropped
    so the consumer loop keeps going.
    """

    def __init__(
        self,
        topics: TopicLayout,
        matcher: ResponseMatcher,
        uow_factory: Callable[[], UnitOfWork],
        validator: Optional[TelemetryValidator] = None,
    ):
        self.topics = topics
        self.matcher = matcher
        self.uow_factory = uow_factory
        self.validator = validator or TelemetryValidator()
        self.stats: Counter = Counter()
        self._stats_lock = threading.Lock()

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def route(self, topic: str, payload: bytes) -> None:
        self._count("received")
        match = self.topics.parse(topic)
        if match is None:
            self._count("ignored")
            log.debug("Ignoring message on unrelated topic %s", topic)
            return

        try:
            if match.kind is TopicKind.TELEMETRY:
                self._on_telemetry(match.device_id, payload)
            elif match.kind is TopicKind.RESPONSE:
                if self.matcher.handle(topic, payload) is None:
                    self._count("responses_discarded")
                else:
                    self._count("responses_matched")
            elif match.kind is TopicKind.STATUS:
                self._count("status")
                log.info(
                    "Device %s status: %s",
                    match.device_id,
                    payload[:200].decode("utf-8", "replace"),
                )
            else:
                self._count("ignored")
        except Exception as exc:
            self._count("failed")
            log.exception("Failed to process message on topic %s: %s", topic, exc)

    def _on_telemetry(self, device_id: str, payload: bytes) -> None:
        try:
            raw = json.loads(payload.decode("utf-8"))
            reading = ingest_reading(
                raw, self.uow_factory(), self.validator, expected_device_id=device_id
            )
        except (UnicodeDecodeError, ValueError, ValidationError) as exc:
            # json.JSONDecodeError is a ValueError
            self._count("telemetry_rejected")
            log.warning("Rejected telemetry from %s: %s", device_id, exc)
            return
        self._count("telemetry_ingested")
        log.debug("Ingested reading %s from %s", reading.reading_id, device_id)


class MQTTServer:
    """Subscriber side of the device channel."""

    def __init__(
        self,
        router: DeviceMessageRouter,
        *,
        host: str,
        port: int = 1883,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
    ):
        self.router = router
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)
        if username and password:
            self._client.username_pw_set(username, password)

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):
        rc = reason_code_int(reason_code)
        if rc:
            log.error("MQTT connect failed, rc=%s", rc)
            return
        log.info("Connected to broker %s:%s", self.host, self.port)
        # subscriptions are redone on every (re)connect since the session is clean
        for topic in self.router.topics.subscriptions():
            client.subscribe(topic, qos=1)
            log.info("Subscribed to %s", topic)

    def _on_message(self, _client, _userdata, msg):
        self.router.route(msg.topic, msg.payload)

    def start(self) -> None:
        log.info("Connecting to MQTT broker at %s:%s", self.host, self.port)
        self._client.connect_async(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()

    def stop(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
