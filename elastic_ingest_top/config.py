"""
Settings.

Read from a .env file, then the environment, then the command line (later
wins). Example .env:

    # Required unless the default http://localhost:9200 is right
    ES_URL=https://es.example.com:9200

    # Authentication (optional, choose one method)
    ES_USER=myuser
    ES_PASS=mypassword
    # or
    ES_API_KEY=your_base64_encoded_api_key

    # TLS
    ES_CA_CERT=/path/to/ca.pem
    ES_INSECURE=false

    # Dashboard
    REFRESH_INTERVAL=5   # seconds, 1-60
    RATE_SAMPLES=10      # moving-average window, 1-600
    COLORMAP=warm

    # Optional - SSH jumphost
    SSH_USER=sshuser
    SSH_HOST=jumphost.example.com
    SSH_PASS=sshpassword
    # OR
    SSH_KEY=/path/to/key

    # Optional - logging (nothing is logged without a file)
    LOG_FILE=/tmp/elastic-ingest-top.log
    LOG_LEVEL=INFO
"""

import argparse
import logging
import os
import ssl
from dataclasses import dataclass
from typing import List, Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv

from elastic_ingest_top.colormaps import COLORMAP_NAMES
from elastic_ingest_top.errors import ConfigError

DEFAULT_URL = "http://localhost:9200"
TRUE_VALUES = ("true", "1", "yes")


@dataclass(frozen=True)
class SSHSettings:
    host: str
    user: str
    password: Optional[str] = None
    key: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    url: str = DEFAULT_URL
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None
    insecure: bool = False
    ca_cert: Optional[str] = None
    refresh: int = 5
    rate_samples: int = 10
    colormap: str = "warm"
    timeout: float = 30.0
    ssh: Optional[SSHSettings] = None
    log_file: Optional[str] = None
    log_level: str = "INFO"

    @property
    def verify(self) -> Union[bool, str]:
        """Value for requests' ``verify``."""
        if self.insecure:
            return False
        return self.ca_cert or True


def _env(name: str) -> Optional[str]:
    """Environment value, with empty strings normalized to None."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str) -> bool:
    return (os.getenv(name) or "").lower() in TRUE_VALUES


def _int_in_range(name: str, raw: Union[str, int], low: int, high: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a valid integer (got: {raw})")
    if value < low or value > high:
        raise ConfigError(f"{name} must be between {low} and {high} (got: {value})")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elastic-ingest-top",
        description="A top-like terminal dashboard for Elasticsearch ingestion rates.",
    )
    parser.add_argument("-u", "--url", default=_env("ES_URL") or DEFAULT_URL, help="cluster URL")
    parser.add_argument("--username", default=_env("ES_USER"), help="basic auth username")
    parser.add_argument("--password", default=_env("ES_PASS"), help="basic auth password")
    parser.add_argument("--api-key", default=_env("ES_API_KEY"), help="API key (wins over basic auth)")
    parser.add_argument(
        "-k", "--insecure", action="store_true", default=_env_bool("ES_INSECURE"),
        help="skip TLS certificate verification",
    )
    parser.add_argument("--ca-cert", metavar="FILE", default=_env("ES_CA_CERT"), help="PEM CA bundle")
    parser.add_argument("--refresh", default=_env("REFRESH_INTERVAL") or "5", help="refresh interval in seconds (1-60)")
    parser.add_argument(
        "--rate-samples", default=_env("RATE_SAMPLES") or "10",
        help="number of samples averaged for the displayed rate",
    )
    parser.add_argument(
        "--colormap", default=_env("COLORMAP") or "warm",
        help=f"gradient colormap ({', '.join(COLORMAP_NAMES)})",
    )
    parser.add_argument("--timeout", default=_env("ES_TIMEOUT") or "30", help="HTTP timeout in seconds")
    parser.add_argument("--ssh-host", default=_env("SSH_HOST"), help="SSH jumphost")
    parser.add_argument("--ssh-user", default=_env("SSH_USER"))
    parser.add_argument("--ssh-pass", default=_env("SSH_PASS"))
    parser.add_argument("--ssh-key", default=_env("SSH_KEY"))
    parser.add_argument("--log-file", default=_env("LOG_FILE"), help="write logs to this file")
    parser.add_argument("--log-level", default=_env("LOG_LEVEL") or "INFO")
    return parser


def _validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigError(f"URL must look like http(s)://host:port (got: {url})")
    try:
        parsed.port
    except ValueError:
        raise ConfigError(f"URL has an invalid port (got: {url})")
    return url.rstrip("/")


def _validate_ca_cert(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    if not os.path.isfile(path):
        raise ConfigError(f"CA certificate not found: {path}")
    try:
        ssl.create_default_context(cafile=path)
    except (ssl.SSLError, ValueError) as exc:
        raise ConfigError(f"Failed to parse CA certificate {path}: {exc}")
    return path


def _validate_ssh(args: argparse.Namespace) -> Optional[SSHSettings]:
    if not any([args.ssh_user, args.ssh_host, args.ssh_pass, args.ssh_key]):
        return None
    if not args.ssh_user or not args.ssh_host:
        raise ConfigError("SSH_USER and SSH_HOST are required when using SSH jumphost")
    if not args.ssh_pass and not args.ssh_key:
        raise ConfigError("Either SSH_PASS or SSH_KEY must be set for the SSH jumphost")
    return SSHSettings(host=args.ssh_host, user=args.ssh_user, password=args.ssh_pass, key=args.ssh_key)


def load_settings(argv: Optional[List[str]] = None, dotenv: bool = True) -> Settings:
    """Parse and validate everything. Raises ConfigError."""
    if dotenv:
        load_dotenv()
    args = build_parser().parse_args(argv)

    if bool(args.username) != bool(args.password):
        raise ConfigError("Basic auth needs both a username (ES_USER) and a password (ES_PASS)")

    colormap = args.colormap.lower()
    if colormap not in COLORMAP_NAMES:
        raise ConfigError(f"Unknown colormap '{args.colormap}'. Available: {', '.join(COLORMAP_NAMES)}")

    try:
        timeout = float(args.timeout)
    except ValueError:
        raise ConfigError(f"ES_TIMEOUT must be a number of seconds (got: {args.timeout})")
    if timeout <= 0:
        raise ConfigError(f"ES_TIMEOUT must be positive (got: {args.timeout})")

    log_level = args.log_level.upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown LOG_LEVEL {args.log_level}")

    return Settings(
        url=_validate_url(args.url),
        username=args.username,
        password=args.password,
        api_key=args.api_key,
        insecure=args.insecure,
        ca_cert=_validate_ca_cert(args.ca_cert),
        refresh=_int_in_range("REFRESH_INTERVAL", args.refresh, 1, 60),
        rate_samples=_int_in_range("RATE_SAMPLES", args.rate_samples, 1, 600),
        colormap=colormap,
        timeout=timeout,
        ssh=_validate_ssh(args),
        log_file=args.log_file,
        log_level=log_level,
    )
