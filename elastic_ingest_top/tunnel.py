"""SSH jumphost tunnel to reach a cluster that is not directly routable."""

import logging
from typing import Any, Dict, Tuple
from urllib.parse import urlparse

from sshtunnel import SSHTunnelForwarder

from elastic_ingest_top.config import SSHSettings

logger = logging.getLogger(__name__)

LOCAL_PORT = 19200
DEFAULT_PORTS = {"http": 80, "https": 443}


def _credentials(ssh: SSHSettings) -> Dict[str, Any]:
    if ssh.password:
        return {"ssh_password": ssh.password}
    if ssh.key:
        return {"ssh_pkey": ssh.key}
    raise ValueError("Either an SSH password or an SSH key must be provided")


def open_tunnel(ssh: SSHSettings, url: str, local_port: int = LOCAL_PORT) -> Tuple[SSHTunnelForwarder, str]:
    """
    Forward localhost:``local_port`` to the cluster behind ``url`` through the
    jumphost and start it.

    Returns the tunnel and the endpoint to use in place of ``url``.
    """
    parsed = urlparse(url)
    remote = (parsed.hostname, parsed.port or DEFAULT_PORTS[parsed.scheme])
    credentials = _credentials(ssh)

    # Only the configured credential is offered; agent and ~/.ssh keys would
    # count towards the server's "Too many authentication failures" limit
    tunnel = SSHTunnelForwarder(
        ssh.host,
        ssh_username=ssh.user,
        remote_bind_address=remote,
        local_bind_address=("127.0.0.1", local_port),
        allow_agent=False,
        host_pkey_directories=[],
        **credentials,
    )
    tunnel.start()
    logger.info("SSH tunnel localhost:%d -> %s:%d via %s", local_port, remote[0], remote[1], ssh.host)
    return tunnel, f"{parsed.scheme}://localhost:{local_port}"
