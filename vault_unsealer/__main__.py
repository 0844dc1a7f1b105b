#!/usr/bin/env python3

import logging
import sys

from vault_unsealer.config import load_settings
from vault_unsealer.credentials import load_credentials
from vault_unsealer.directory import ClusterDirectory
from vault_unsealer.errors import ConfigError, DiscoveryError
from vault_unsealer.log import setup_logging
from vault_unsealer.reconciler import Reconciler

logger = logging.getLogger("vault_unsealer")


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        logger.critical("%s", e)
        return 1

    setup_logging(settings.log_level)

    try:
        credentials = load_credentials()
    except ConfigError as e:
        logger.critical("%s", e)
        return 1

    directory = ClusterDirectory.from_settings(settings, credentials)
    reconciler = Reconciler(settings, credentials, directory)

    logger.info(
        "Watching service %s/%s on port %d every %ds",
        credentials.namespace, settings.service_name, settings.vault_port, settings.refresh_time,
    )
    try:
        reconciler.run_forever()
    except DiscoveryError as e:
        logger.critical("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
