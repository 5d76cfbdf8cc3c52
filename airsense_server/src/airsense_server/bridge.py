"""
Wires the command correlation engine to its MQTT and database adapters.

The command store lives in memory, so the REST handlers, the MQTT
subscriber and the sweeper must all run in the same process and share one
Bridge.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from airsense_core.application import (
    CommandCorrelator,
    CommandStore,
    ExpirySweeper,
    ResponseMatcher,
    TelemetryValidator,
)
from airsense_core.config.environments import Settings, get_settings
from airsense_core.domain.ports import DeviceChannel, UnitOfWork
from airsense_core.domain.topics import TopicLayout

from airsense_server.adapters.db.uow import SqlAlchemyUoW
from airsense_server.adapters.mqtt.publisher import MQTTCommandPublisher
from airsense_server.adapters.mqtt.server import DeviceMessageRouter, MQTTServer

log = logging.getLogger(__name__)


@dataclass
class Bridge:
    store: CommandStore
    correlator: CommandCorrelator
    matcher: ResponseMatcher
    router: DeviceMessageRouter
    sweeper: ExpirySweeper
    channel: DeviceChannel
    subscriber: Optional[MQTTServer] = None

    def start(self) -> None:
        log.info("Starting bridge")
        self.sweeper.start()
        if self.subscriber is not None:
            self.subscriber.start()

    def stop(self) -> None:
        log.info("Stopping bridge")
        if self.subscriber is not None:
            self.subscriber.stop()
        close = getattr(self.channel, "close", None)
        if close is not None:
            close()
        self.sweeper.stop()
        self.sweeper.join(timeout=5)


def build_bridge(
    settings: Optional[Settings] = None,
    uow_factory: Callable[[], UnitOfWork] = SqlAlchemyUoW,
    channel: Optional[DeviceChannel] = None,
    with_subscriber: bool = True,
) -> Bridge:
    settings = settings or get_settings()
    topics = TopicLayout(prefix=settings.MQTT_TOPIC_PREFIX)

    if channel is None:
        channel = MQTTCommandPublisher(
            host=settings.MQTT_BROKER,
            port=settings.MQTT_PORT,
            topics=topics,
            client_id=f"{settings.MQTT_CLIENT_ID}-pub",
            username=settings.MQTT_USERNAME,
            password=settings.MQTT_PASSWORD,
            ack_timeout=settings.MQTT_ACK_TIMEOUT_SEC,
        )

    store = CommandStore()
    correlator = CommandCorrelator(
        store, channel, uow_factory, command_ttl=settings.COMMAND_TTL_SEC
    )
    matcher = ResponseMatcher(correlator, topics)
    router = DeviceMessageRouter(topics, matcher, uow_factory, TelemetryValidator())
    sweeper = ExpirySweeper(
        store,
        interval_s=settings.SWEEP_INTERVAL_SEC,
        retention_s=settings.COMMAND_RETENTION_SEC,
    )

    subscriber = None
    if with_subscriber:
        subscriber = MQTTServer(
            router,
            host=settings.MQTT_BROKER,
            port=settings.MQTT_PORT,
            client_id=f"{settings.MQTT_CLIENT_ID}-sub",
            username=settings.MQTT_USERNAME,
            password=settings.MQTT_PASSWORD,
        )

    return Bridge(
        store=store,
        correlator=correlator,
        matcher=matcher,
        router=router,
        sweeper=sweeper,
        channel=channel,
        subscriber=subscriber,
    )
