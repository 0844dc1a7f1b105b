"""
Environment-derived settings for the unsealer.

Everything is read once by load_settings() and handed to the reconciler
as an immutable Settings value.
"""

import logging
import math
import os
from dataclasses import dataclass

from vault_unsealer.errors import ConfigError

DEFAULT_REQUEST_TIMEOUT = 5
DEFAULT_DISCOVERY_BACKOFF = 5
MAX_UNSEAL_WORKERS = 32
LOG_LEVELS = tuple(logging.getLevelName(level) for level in (
    logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
))

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    api_server: str
    service_name: str
    vault_port: int
    refresh_time: int
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    workers: int = 1
    discovery_attempts: int = 1
    discovery_backoff: float = DEFAULT_DISCOVERY_BACKOFF
    verify_ssl: bool = False
    log_level: str = "INFO"


def _require(environ, key):
    value = environ.get(key, "").strip()
    if not value:
        raise ConfigError(f"Environment variable {key} must be set")
    return value


def _int(environ, key, default=None, minimum=None, maximum=None):
    raw = environ.get(key, "").strip()
    if not raw:
        if default is None:
            raise ConfigError(f"Environment variable {key} must be set")
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"Error parsing env variable {key}: {raw!r} is not an integer") from None
    if minimum is not None and value < minimum:
        raise ConfigError(f"Environment variable {key} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"Environment variable {key} must be <= {maximum}, got {value}")
    return value


def _float(environ, key, default, minimum):
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"Error parsing env variable {key}: {raw!r} is not a number") from None
    if not math.isfinite(value):
        raise ConfigError(f"Environment variable {key} must be a finite number, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"Environment variable {key} must be >= {minimum}, got {value}")
    return value


def _log_level(environ):
    level = environ.get("LOG_LEVEL", "").strip().upper() or "INFO"
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Environment variable LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}"
        )
    return level


def _api_server(environ):
    explicit = environ.get("KUBERNETES_APISERVER", "").strip()
    if explicit:
        return explicit
    # Injected into every pod by the kubelet.
    host = environ.get("KUBERNETES_SERVICE_HOST", "").strip()
    port = environ.get("KUBERNETES_SERVICE_PORT", "").strip()
    if host and port:
        if ":" in host:
            host = f"[{host}]"
        return f"https://{host}:{port}"
    raise ConfigError(
        "Environment variable KUBERNETES_APISERVER must be set "
        "(or KUBERNETES_SERVICE_HOST and KUBERNETES_SERVICE_PORT)"
    )


def load_settings(environ=None):
    """
    Build Settings from the process environment.

    Raises ConfigError naming the offending variable on the first problem.
    """
    if environ is None:
        environ = os.environ

    timeout = _float(environ, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, minimum=0)
    if timeout <= 0:
        raise ConfigError("Environment variable REQUEST_TIMEOUT must be > 0")

    return Settings(
        api_server=_api_server(environ),
        service_name=_require(environ, "VAULT_ENDPOINT_NAME"),
        vault_port=_int(environ, "VAULT_PORT", minimum=1, maximum=65535),
        refresh_time=_int(environ, "REFRESH_TIME", minimum=1),
        request_timeout=timeout,
        workers=_int(environ, "UNSEAL_WORKERS", default=1, minimum=1, maximum=MAX_UNSEAL_WORKERS),
        discovery_attempts=_int(environ, "DISCOVERY_ATTEMPTS", default=1, minimum=1),
        discovery_backoff=_float(environ, "DISCOVERY_BACKOFF", DEFAULT_DISCOVERY_BACKOFF, minimum=0),
        verify_ssl=environ.get("KUBERNETES_VERIFY_SSL", "false").strip().lower() in _TRUTHY,
        log_level=_log_level(environ),
    )
