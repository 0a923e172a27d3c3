"""
Configuration management for Kestrel.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
Configuration objects are immutable once built.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from kestrel.exceptions import InvalidConfigurationError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TLS_PORT = 443
DEFAULT_PLAIN_PORT = 80


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${KESTREL_ENDPOINT}" -> value of KESTREL_ENDPOINT env var
        "${AWS_REGION:us-east-1}" -> value of AWS_REGION or "us-east-1" if not set
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class CredentialsConfig:
    """Credential material handed to the request signer."""

    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""

    def __repr__(self) -> str:
        # Never render secrets in logs or tracebacks
        return f"CredentialsConfig(access_key_id={self.access_key_id!r})"

    @property
    def is_empty(self) -> bool:
        return not (self.access_key_id or self.secret_access_key)


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff configuration for the dispatcher's retry loop.

    The k-th retry (k starting at 0) sleeps ``backoff_unit * 2**k`` seconds.
    ``max_attempts`` of None means retryable errors are retried without limit.
    """

    backoff_unit: float = 0.05
    max_attempts: Optional[int] = None
    max_backoff: Optional[float] = None


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    json_format: bool = True


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable connection parameters for one service endpoint.

    Attributes:
        endpoint: Service host, optionally as ``host:port``
        use_tls: Use an encrypted transport (https, default port 443) or plain http (port 80)
        region: Signing region
        service_name: Service name used in the target header and signing scope
        api_version: API version used in the target header
        timeout: Per-transmission timeout in seconds
        credentials: Credential material, opaque to the dispatcher
        retry: Backoff configuration
        logging: Logging configuration
    """

    endpoint: str = "dynamodb.us-east-1.amazonaws.com"
    use_tls: bool = True
    region: str = "us-east-1"
    service_name: str = "DynamoDB"
    api_version: str = "20120810"
    signing_name: str = "dynamodb"
    path: str = "/"
    timeout: float = 30.0
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def host_and_port(self) -> Tuple[str, int]:
        """
        Resolve host and port from the endpoint.

        Returns:
            Tuple of (host, port); the port defaults to 443 or 80 per ``use_tls``

        Raises:
            InvalidConfigurationError: If the endpoint or port is malformed
        """
        endpoint = self.endpoint.strip()
        if "://" in endpoint:
            endpoint = endpoint.split("://", 1)[1]
        endpoint = endpoint.rstrip("/")
        if not endpoint:
            raise InvalidConfigurationError("endpoint must not be empty")

        default_port = DEFAULT_TLS_PORT if self.use_tls else DEFAULT_PLAIN_PORT
        if endpoint.startswith("["):
            # Bracketed IPv6 literal, e.g. [::1] or [::1]:8000
            closing = endpoint.find("]")
            if closing < 2:
                raise InvalidConfigurationError(f"endpoint '{self.endpoint}' has an invalid IPv6 host")
            host, rest = endpoint[:closing + 1], endpoint[closing + 1:]
            if not rest:
                return host, default_port
            if not rest.startswith(":"):
                raise InvalidConfigurationError(f"endpoint '{self.endpoint}' is malformed")
            port_text = rest[1:]
        else:
            host, sep, port_text = endpoint.rpartition(":")
            if not sep:
                return endpoint, default_port

        if not host:
            raise InvalidConfigurationError(f"endpoint '{self.endpoint}' has no host")
        try:
            port = int(port_text)
        except ValueError:
            raise InvalidConfigurationError(
                f"endpoint '{self.endpoint}' has an invalid port '{port_text}'"
            )
        if not 0 < port < 65536:
            raise InvalidConfigurationError(
                f"endpoint '{self.endpoint}' port must be between 1 and 65535"
            )
        return host, port

    @property
    def host(self) -> str:
        return self.host_and_port()[0]

    @property
    def port(self) -> int:
        return self.host_and_port()[1]

    @property
    def scheme(self) -> str:
        return "https" if self.use_tls else "http"

    @property
    def base_url(self) -> str:
        """Root URL of the endpoint, omitting the port when it is the scheme default."""
        host, port = self.host_and_port()
        default_port = DEFAULT_TLS_PORT if self.use_tls else DEFAULT_PLAIN_PORT
        if port == default_port:
            return f"{self.scheme}://{host}"
        return f"{self.scheme}://{host}:{port}"

    @property
    def host_header(self) -> str:
        """Value of the Host header, which carries the port only when non-default."""
        return self.base_url.split("://", 1)[1]


def get_default_config_path() -> str:
    """Get default configuration file path."""
    return os.environ.get("KESTREL_CONFIG", os.path.expanduser("~/.kestrel/config.yaml"))


def get_default_config() -> ClientConfig:
    """
    Get default configuration.

    Returns:
        ClientConfig: Default configuration
    """
    return ClientConfig()


def load_config(config_path: Optional[str] = None) -> ClientConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        ClientConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(str(config_path))

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': top level must be a mapping"
        )

    config_data = _expand_env_vars(config_data)

    try:
        config = build_config(config_data)
    except InvalidConfigurationError:
        raise
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(
            f"'{name}' must be a mapping, got {type(section).__name__}"
        )
    return section


def build_config(config_data: Dict[str, Any]) -> ClientConfig:
    """
    Build and validate a ClientConfig from a plain dictionary.

    Args:
        config_data: Mapping shaped like the YAML configuration file

    Returns:
        ClientConfig: Validated configuration

    Raises:
        InvalidConfigurationError: If a value fails validation
    """
    defaults = ClientConfig()

    credentials_data = _section(config_data, "credentials")
    credentials = CredentialsConfig(
        access_key_id=str(credentials_data.get("access_key_id", "")),
        secret_access_key=str(credentials_data.get("secret_access_key", "")),
        session_token=str(credentials_data.get("session_token", "") or ""),
    )

    retry_data = _section(config_data, "retry")
    max_attempts = retry_data.get("max_attempts")
    max_backoff = retry_data.get("max_backoff")
    retry = RetryConfig(
        backoff_unit=float(retry_data.get("backoff_unit", RetryConfig.backoff_unit)),
        max_attempts=int(max_attempts) if max_attempts not in (None, "") else None,
        max_backoff=float(max_backoff) if max_backoff not in (None, "") else None,
    )

    logging_data = _section(config_data, "logging")
    logging_config = LoggingConfig(
        level=str(logging_data.get("level", LoggingConfig.level)),
        file=str(logging_data.get("file", "") or ""),
        json_format=_parse_bool(logging_data.get("json_format", True)),
    )

    config = ClientConfig(
        endpoint=str(config_data.get("endpoint", defaults.endpoint)),
        use_tls=_parse_bool(config_data.get("use_tls", defaults.use_tls)),
        region=str(config_data.get("region", defaults.region)),
        service_name=str(config_data.get("service_name", defaults.service_name)),
        api_version=str(config_data.get("api_version", defaults.api_version)),
        signing_name=str(config_data.get("signing_name", defaults.signing_name)),
        path=str(config_data.get("path", defaults.path)),
        timeout=float(config_data.get("timeout", defaults.timeout)),
        credentials=credentials,
        retry=retry,
        logging=logging_config,
    )
    validate_config(config)
    return config


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """
    Build configuration from environment variables.

    Reads ``KESTREL_ENDPOINT``, ``KESTREL_USE_TLS``, ``KESTREL_TIMEOUT``,
    ``KESTREL_BACKOFF_UNIT``, ``KESTREL_MAX_ATTEMPTS`` and the standard
    ``AWS_ACCESS_KEY_ID``, ``AWS_SECRET_ACCESS_KEY``, ``AWS_SESSION_TOKEN``,
    ``AWS_REGION`` variables.

    Args:
        environ: Mapping to read instead of ``os.environ``

    Returns:
        ClientConfig: Validated configuration
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {
        "credentials": {
            "access_key_id": env.get("AWS_ACCESS_KEY_ID", ""),
            "secret_access_key": env.get("AWS_SECRET_ACCESS_KEY", ""),
            "session_token": env.get("AWS_SESSION_TOKEN", ""),
        },
        "retry": {
            "max_attempts": env.get("KESTREL_MAX_ATTEMPTS"),
        },
    }
    region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION")
    if region:
        data["region"] = region
        data["endpoint"] = f"dynamodb.{region}.amazonaws.com"
    if env.get("KESTREL_ENDPOINT"):
        data["endpoint"] = env["KESTREL_ENDPOINT"]
    if env.get("KESTREL_USE_TLS"):
        data["use_tls"] = env["KESTREL_USE_TLS"]
    if env.get("KESTREL_TIMEOUT"):
        data["timeout"] = env["KESTREL_TIMEOUT"]
    if env.get("KESTREL_BACKOFF_UNIT"):
        data["retry"]["backoff_unit"] = env["KESTREL_BACKOFF_UNIT"]

    try:
        return build_config(data)
    except (TypeError, ValueError) as e:
        raise InvalidConfigurationError(f"Invalid environment configuration: {e}") from e


def validate_config(config: ClientConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    # Resolves and checks host/port
    config.host_and_port()

    if not config.service_name:
        raise InvalidConfigurationError("service_name must not be empty")
    if not config.api_version:
        raise InvalidConfigurationError("api_version must not be empty")
    if not config.path.startswith("/"):
        raise InvalidConfigurationError(f"path must start with '/', got '{config.path}'")
    if config.timeout <= 0:
        raise InvalidConfigurationError(f"timeout must be positive, got {config.timeout}")

    if config.retry.backoff_unit < 0:
        raise InvalidConfigurationError(
            f"retry.backoff_unit must be non-negative, got {config.retry.backoff_unit}"
        )
    if config.retry.max_attempts is not None and config.retry.max_attempts < 1:
        raise InvalidConfigurationError(
            f"retry.max_attempts must be at least 1, got {config.retry.max_attempts}"
        )
    if config.retry.max_backoff is not None and config.retry.max_backoff < 0:
        raise InvalidConfigurationError(
            f"retry.max_backoff must be non-negative, got {config.retry.max_backoff}"
        )

    if bool(config.credentials.access_key_id) != bool(config.credentials.secret_access_key):
        raise InvalidConfigurationError(
            "credentials.access_key_id and credentials.secret_access_key must be set together"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging.level must be one of {valid_log_levels}, got '{config.logging.level}'"
        )
