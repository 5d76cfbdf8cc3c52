"""
AirSense device simulator.

• Publishes fake telemetry to   <prefix>/devices/<DEVICE_ID>/telemetry
• Listens on                    <prefix>/devices/<DEVICE_ID>/commands
• Answers each command on       <prefix>/devices/<DEVICE_ID>/commands/<commandID>/response

Usage:
    python scripts/simulate_device.py --device-id d1 --interval 5
"""

import argparse
import json
import logging
import random
import time
from datetime import datetime, timezone

import paho.mqtt.client as mqtt
from airsense_core.config.environments import get_settings
from airsense_core.domain.topics import TopicLayout

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(message)s",
)
log = logging.getLogger("simulator")

KNOWN_ACTIONS = {"ping", "calibrate", "reboot", "set_interval"}


# -------------------------------------------------------------------- #
# sensor
# -------------------------------------------------------------------- #
def read_sensors() -> dict:
    return {
        "pm25": {"value": round(random.uniform(2, 60), 1), "unit": "μg/m³"},
        "co2": {"value": round(random.uniform(400, 1500)), "unit": "ppm"},
        "co": {"value": round(random.uniform(0, 9), 2), "unit": "ppm"},
        "temperature": {"value": round(random.uniform(18, 28), 1), "unit": "°C"},
        "humidity": {"value": round(random.uniform(30, 70), 1), "unit": "%"},
    }


def telemetry(device_id: str) -> str:
    return json.dumps(
        {
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            "deviceID": device_id,
            "sensors": read_sensors(),
        }
    )


# -------------------------------------------------------------------- #
# commands
# -------------------------------------------------------------------- #
def make_on_command(topics: TopicLayout, device_id: str, fail_rate: float, silent: bool):
    def on_command(client: mqtt.Client, _userdata, msg: mqtt.MQTTMessage) -> None:
        try:
            cmd = json.loads(msg.payload.decode())
            command_id = cmd["commandID"]
        except (ValueError, KeyError) as exc:
            log.error("bad command payload: %s", exc)
            return

        log.info("command %s: %s %s", command_id, cmd.get("action"), cmd.get("params"))
        if silent:
            return

        if cmd.get("action") not in KNOWN_ACTIONS:
            body = {"status": "error", "result": {"message": f"unknown action {cmd.get('action')!r}"}}
        elif random.random() < fail_rate:
            body = {"status": "error", "result": {"message": "simulated failure"}}
        else:
            body = {"status": "success", "result": {"action": cmd["action"], "at": time.time()}}

        body["commandID"] = command_id
        client.publish(topics.response(device_id, command_id), json.dumps(body), qos=1)

    return on_command


# -------------------------------------------------------------------- #
# main
# -------------------------------------------------------------------- #
def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate an AirSense device")
    parser.add_argument("--device-id", default="sim-device-1")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between readings")
    parser.add_argument("--fail-rate", type=float, default=0.0, help="Share of commands answered with error")
    parser.add_argument("--silent", action="store_true", help="Never answer commands")
    args = parser.parse_args()

    topics = TopicLayout(prefix=settings.MQTT_TOPIC_PREFIX)
    cmd_topic = topics.command(args.device_id)

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"sim-{args.device_id}")
    if settings.MQTT_USERNAME and settings.MQTT_PASSWORD:
        client.username_pw_set(settings.MQTT_USERNAME, settings.MQTT_PASSWORD)
    client.message_callback_add(
        cmd_topic, make_on_command(topics, args.device_id, args.fail_rate, args.silent)
    )
    client.on_connect = lambda c, *_: c.subscribe(cmd_topic, qos=1)
    client.connect(settings.MQTT_BROKER, settings.MQTT_PORT)
    client.loop_start()

    log.info("simulating %s against %s:%s", args.device_id, settings.MQTT_BROKER, settings.MQTT_PORT)
    try:
        while True:
            client.publish(topics.telemetry(args.device_id), telemetry(args.device_id), qos=1)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        pass
    finally:
        client.loop_stop()
        client.disconnect()


if __name__ == "__main__":
    main()
