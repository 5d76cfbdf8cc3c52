import json
import logging
import threading
from typing import Dict, Optional, Set

import paho.mqtt.client as paho
from airsense_core.domain.errors import DispatchError
from airsense_core.domain.models import Command
from airsense_core.domain.ports import DeviceChannel
from airsense_core.domain.topics import TopicLayout

logger = logging.getLogger(__name__)


def reason_code_int(rc) -> int:
    # paho 2.x hands out ReasonCode objects, older callers plain ints
    return int(getattr(rc, "value", rc))


def command_payload(command: Command) -> str:
    return json.dumps(
        {"commandID": command.command_id, "action": command.action, "params": command.params}
    )


class MQTTCommandPublisher(DeviceChannel):
    """Publishes commands to ``<prefix>/devices/<id>/commands`` and waits for the broker ack."""

    def __init__(
        self,
        *,
        host: str,
        port: int = 1883,
        topics: TopicLayout,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        ack_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.topics = topics
        self.client_id = client_id
        self.keepalive = keepalive
        self.ack_timeout = ack_timeout

        self._pending: Dict[int, threading.Event] = {}
        self._acked: Set[int] = set()
        # mids whose publish_command gave up; their late acks must not count
        self._abandoned: Set[int] = set()
        self._lock = threading.Lock()
        self._connected = False
        self._disconnected_rc: Optional[int] = None

        self._client = paho.Client(
            paho.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
            protocol=paho.MQTTv311,
        )
        self._client.on_publish = self._on_publish
        self._client.on_disconnect = self._on_disconnect
        self._client.on_connect = self._on_connect
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)

        if username and password:
            self._client.username_pw_set(username, password)

        logger.info(
            "Initializing MQTT command publisher: host=%s, port=%s, prefix=%s, client_id=%s",
            host,
            port,
            topics.prefix,
            client_id,
        )

        self._connect()

    def _connect(self) -> None:
        """Connect to the MQTT broker."""
        try:
            result = self._client.connect(self.host, self.port, self.keepalive)
            if result != paho.MQTT_ERR_SUCCESS:
                logger.error("Failed to connect to MQTT broker: %s", result)
                return

            self._client.loop_start()
            logger.info("Connected to MQTT broker")
        except OSError as e:
            # the network loop is not running yet, so keep retrying in the background
            logger.error("Exception during MQTT connection: %s", e)
            self._client.connect_async(self.host, self.port, self.keepalive)
            self._client.loop_start()

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        rc = reason_code_int(reason_code)
        if rc == 0:
            self._connected = True
            logger.info("Command publisher connected to MQTT broker")
        else:
            self._connected = False
            logger.error("Failed to connect to MQTT broker, return code: %s", rc)

    def _on_publish(self, client, userdata, mid, reason_code=None, properties=None) -> None:
        logger.debug("Publish acknowledged for message ID: %s", mid)
        with self._lock:
            if mid in self._abandoned:
                self._abandoned.discard(mid)
                logger.warning("Dropping late acknowledgement for message ID: %s", mid)
                return
            ev = self._pending.pop(mid, None)
            if ev is None:
                # acked before publish_command registered its event
                self._acked.add(mid)
            else:
                ev.set()

    def _on_disconnect(self, client, userdata, flags=None, reason_code=0, properties=None) -> None:
        self._connected = False
        self._disconnected_rc = reason_code_int(reason_code)
        logger.warning("Command publisher disconnected, return code: %s", self._disconnected_rc)

    def publish_command(self, command: Command) -> None:
        """Publish *command* with QoS 1. Raises DispatchError if the broker does not take it."""
        if not self._connected:
            raise DispatchError("not connected to MQTT broker")

        topic = self.topics.command(command.device_id)
        info = self._client.publish(topic, command_payload(command), qos=1, retain=False)
        if info.rc != paho.MQTT_ERR_SUCCESS:
            raise DispatchError(f"publish to {topic} refused, error code {info.rc}")

        ev = threading.Event()
        with self._lock:
            if info.mid in self._acked:
                self._acked.discard(info.mid)
                ev.set()
            else:
                self._pending[info.mid] = ev

        if not ev.wait(timeout=self.ack_timeout):
            with self._lock:
                if self._pending.pop(info.mid, None) is not None:
                    self._abandoned.add(info.mid)
            if not ev.is_set():
                raise DispatchError(f"no broker acknowledgement within {self.ack_timeout}s")
        logger.debug("Command %s published to %s (mid=%s)", command.command_id, topic, info.mid)

    def is_connected(self) -> bool:
        return self._connected

    def get_disconnect_reason(self) -> Optional[int]:
        return self._disconnected_rc

    def close(self) -> None:
        logger.info("Closing MQTT command publisher")
        self._client.loop_stop()
        self._client.disconnect()
        self._connected = False
