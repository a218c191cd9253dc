"""
Entry point: load settings, connect to the cluster, serve until interrupted.
"""

import asyncio
import sys

import structlog

from .api import create_app
from .config import Settings
from .k8s_client import ClusterConnectionError, CredentialError, new_client
from .logging_config import configure_logging
from .server import LifecycleController, ServeError, ShutdownError, StartupError

logger = structlog.get_logger(__name__)


def main() -> None:
    settings = Settings()
    configure_logging(settings.debug)
    logger.debug("Loaded settings", **settings.model_dump())

    try:
        cluster = new_client(settings)
    except (CredentialError, ClusterConnectionError) as e:
        logger.critical("Cannot create Kubernetes client", error=str(e))
        sys.exit(1)

    app = create_app(settings, cluster)
    controller = LifecycleController(
        app,
        host=settings.host,
        port=settings.port,
        drain_timeout=settings.shutdown_timeout_seconds,
    )

    try:
        asyncio.run(controller.run())
    except (StartupError, ServeError, ShutdownError) as e:
        logger.critical("Server terminated abnormally", state=controller.state.value, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
