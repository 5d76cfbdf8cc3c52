"""
Canonical entry point for airsense_server package.

Usage:
    airsense-server api --environment development
    airsense-server setup-db --environment development
    airsense-server add-device --device-id d1 --user-id u1 --name "Living room"
"""

import argparse
import logging
import os
import sys

import uvicorn
from airsense_core.config.environments import get_settings


def setup_logging(config) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return None


def run_api_server(args: argparse.Namespace) -> None:
    """Run the REST API together with the MQTT bridge and command sweeper."""
    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    host = args.host or config.API_HOST
    port = args.port or config.API_PORT

    log.info("Starting AirSense API server...")
    log.info(f"Environment: {args.environment}")
    log.info(f"Host: {host}")
    log.info(f"Port: {port}")
    log.info(f"MQTT Broker: {config.MQTT_BROKER}:{config.MQTT_PORT}")
    log.info(f"Topic prefix: {config.MQTT_TOPIC_PREFIX}")

    # one worker only: commands in flight are held in this process's memory
    uvicorn.run(
        "airsense_server.adapters.api.main:app",
        host=host,
        port=port,
        workers=1,
        log_level=config.LOG_LEVEL.lower(),
    )
    return None


def setup_database(args: argparse.Namespace) -> None:
    """Create the database tables."""
    from sqlalchemy import create_engine

    from airsense_server.adapters.db.sqlalchemy_models import Base

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    log.info(f"Setting up database for {args.environment} environment...")
    log.info(f"Database URL: {config.DATABASE_URL}")

    engine = create_engine(config.DATABASE_URL, future=True, echo=False)
    Base.metadata.create_all(bind=engine)
    log.info("Database setup completed successfully")
    return None


def register_device(args: argparse.Namespace) -> None:
    """Insert a device record (local setup; provisioning happens elsewhere)."""
    from airsense_core.application import add_device

    from airsense_server.adapters.db.uow import SqlAlchemyUoW

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    if not args.device_id or not args.user_id:
        log.error("add-device needs --device-id and --user-id")
        sys.exit(1)

    device = add_device(
        device_id=args.device_id,
        user_id=args.user_id,
        name=args.name or args.device_id,
        location=args.location or "",
        uow=SqlAlchemyUoW(),
    )
    log.info(f"Added device {device.device_id} for user {device.user_id}")
    return None


def main() -> None:
    """Main entry point for airsense_server commands."""
    parser = argparse.ArgumentParser(
        description="AirSense Server - REST/MQTT command bridge and database management"
    )
    parser.add_argument(
        "--environment",
        choices=["production", "development", "testing"],
        default="development",
        help="Environment to run in",
    )
    parser.add_argument(
        "command",
        choices=["api", "setup-db", "add-device"],
        help="Command to run",
    )
    parser.add_argument("--host", help="Host to bind to (overrides config)")
    parser.add_argument("--port", type=int, help="Port to bind to (overrides config)")
    parser.add_argument("--device-id", help="Device id (add-device)")
    parser.add_argument("--user-id", help="Owning user id (add-device)")
    parser.add_argument("--name", help="Display name (add-device)")
    parser.add_argument("--location", help="Location (add-device)")

    args = parser.parse_args()

    # Set environment variable for config
    os.environ["AIRSENSE_ENV"] = args.environment

    if args.command == "api":
        run_api_server(args)
    elif args.command == "setup-db":
        setup_database(args)
    elif args.command == "add-device":
        register_device(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
