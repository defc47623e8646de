"""Command-line entry point: settings, logging, optional tunnel, then the dashboard."""

import logging
import sys
from typing import List, Optional

from sshtunnel import SSHTunnelForwarder

from elastic_ingest_top.client import ClusterClient, auth_from_credentials
from elastic_ingest_top.config import Settings, load_settings
from elastic_ingest_top.errors import ConfigError
from elastic_ingest_top.poller import Poller
from elastic_ingest_top.state import DashboardState
from elastic_ingest_top.tui import IngestTopApp
from elastic_ingest_top.tunnel import LOCAL_PORT, open_tunnel

logger = logging.getLogger("elastic_ingest_top")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Log to a file or not at all; the terminal belongs to the UI."""
    if settings.log_file:
        logging.basicConfig(filename=settings.log_file, level=settings.log_level, format=LOG_FORMAT)
    else:
        logger.addHandler(logging.NullHandler())
        logger.propagate = False


def main(argv: Optional[List[str]] = None) -> None:
    try:
        settings = load_settings(argv)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings)
    logger.info("Starting against %s (refresh %ss, %d rate samples)", settings.url, settings.refresh, settings.rate_samples)

    tunnel: Optional[SSHTunnelForwarder] = None
    client: Optional[ClusterClient] = None
    endpoint = settings.url

    try:
        if settings.ssh:
            print(f"\n→ Setting up SSH tunnel through {settings.ssh.host}", file=sys.stderr)
            try:
                tunnel, endpoint = open_tunnel(settings.ssh, settings.url)
            except Exception as exc:
                logger.exception("SSH tunnel failed")
                print(f"ERROR: SSH tunnel failed: {exc}", file=sys.stderr)
                sys.exit(1)
            print(f"  ✓ SSH tunnel established (localhost:{LOCAL_PORT})\n", file=sys.stderr)

        auth, headers = auth_from_credentials(settings.api_key, settings.username, settings.password)
        client = ClusterClient(
            endpoint,
            auth=auth,
            headers=headers,
            verify=settings.verify,
            timeout=settings.timeout,
        )
        state = DashboardState(rate_samples=settings.rate_samples, refresh_interval=settings.refresh)
        poller = Poller(state, client)
        app = IngestTopApp(state, poller, client, url=settings.url, colormap=settings.colormap)
        app.run()
    finally:
        if client is not None:
            client.close()
        if tunnel:
            tunnel.stop()
            logger.info("SSH tunnel closed")


if __name__ == "__main__":
    main()
