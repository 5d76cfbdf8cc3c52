"""
Canonical entry point for airsense_core package.

This package contains domain models, application services, and configuration.
It does not talk to a broker or a database on its own.
"""

import sys

from airsense_core.config.environments import get_settings


def main() -> None:
    """Main entry point for airsense_core package."""
    print("airsense_core - Domain and application layer package")
    print("This package is not intended to be run directly.")
    print("Use airsense-server instead.")

    try:
        config = get_settings()
        print("\nCurrent configuration:")
        print(f"Environment: {config.ENVIRONMENT.value}")
        print(f"Database: {config.DATABASE_URL}")
        print(f"MQTT: {config.MQTT_BROKER}:{config.MQTT_PORT} (prefix {config.MQTT_TOPIC_PREFIX})")
        print(f"API: {config.API_HOST}:{config.API_PORT}")
        print(f"Command TTL: {config.COMMAND_TTL_SEC}s, retention: {config.COMMAND_RETENTION_SEC}s")
    except Exception as e:
        print(f"Could not load configuration: {e}")

    sys.exit(0)


if __name__ == "__main__":
    main()
