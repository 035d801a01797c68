# -*- codeing = utf-8 -*-
# @Create: 2026-10-18 9:12 a.m.
# @Update: 2026-10-18 9:12 a.m.
# @Author: John Zhao
"""Load the monitor configuration file and set up diagnostic logging."""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

LOGGER = logging.getLogger(__name__)

MAIL_USERNAME_ENV = "MAIL_USERNAME"
MAIL_PASSWORD_ENV = "MAIL_PASSWORD"

DEFAULT_WORKERS = 4
DEFAULT_QUEUE_SIZE = 100
DEFAULT_MAIL_TIMEOUT = 10
DEFAULT_LOG_LEVEL = "INFO"
SMTPS_PORT = 465

REQUIRED_FIELDS = (
    "From",
    "LogFilePath",
    "Wait",
    "Timeout",
    "Recipient",
    "Mailserver",
    "Port",
    "Sites",
)

_BOOL_TRUE_VALUES = {"1", "true", "yes", "on"}
_BOOL_FALSE_VALUES = {"0", "false", "no", "off"}

_LOG_HANDLER_FLAG = "_uptime_monitor_managed"
_DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ConfigurationError(ValueError):
    """Raised when the configuration file cannot be used to start the monitor."""


@dataclass(frozen=True)
class MailSettings:
    """SMTP relay and addressing used for alert delivery."""

    from_addr: str
    recipient: str
    server: str
    port: int
    username: str = ""
    password: str = field(default="", repr=False)
    use_ssl: bool = False
    timeout: int = DEFAULT_MAIL_TIMEOUT


@dataclass(frozen=True)
class MonitorConfig:
    """Describe one monitor process: cadence, probe options, sites and mail."""

    log_file_path: Path
    wait: int
    timeout: int
    sites: Tuple[str, ...]
    mail: MailSettings
    workers: int = DEFAULT_WORKERS
    queue_size: int = DEFAULT_QUEUE_SIZE
    retry: bool = False
    log_level: str = DEFAULT_LOG_LEVEL


def _parse_bool_option(value: object, *, key: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return default
    if text in _BOOL_TRUE_VALUES:
        return True
    if text in _BOOL_FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} is not a valid boolean: {value!r}")


def _parse_int_option(
    value: object,
    *,
    key: str,
    default: Optional[int] = None,
    minimum: Optional[int] = None,
) -> int:
    if value is None:
        if default is None:
            raise ConfigurationError(f"{key} is required")
        result = int(default)
    elif isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer, not {value!r}")
    else:
        try:
            result = int(str(value).strip())
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"{key} must be an integer: {value!r}") from exc
    if minimum is not None and result < minimum:
        raise ConfigurationError(
            f"{key} value {result} is smaller than the minimum {minimum}")
    return result


def _require_text(values: Mapping[str, Any], key: str) -> str:
    value = values.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{key} must be a non-empty string")
    return value.strip()


def _optional_text(values: Mapping[str, Any], key: str) -> str:
    value = values.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string")
    return value


def _parse_sites(raw_sites: object) -> Tuple[str, ...]:
    if not isinstance(raw_sites, list):
        raise ConfigurationError("Sites must be a list of URLs")
    sites = []
    for index, entry in enumerate(raw_sites):
        if not isinstance(entry, str) or not entry.strip():
            raise ConfigurationError(
                f"Sites[{index}] must be a non-empty URL string")
        sites.append(entry.strip())
    return tuple(sites)


def _parse_log_level(value: object) -> str:
    text = str(value).strip().upper() if value is not None else ""
    if not text:
        return DEFAULT_LOG_LEVEL
    if text == "WARN":
        text = "WARNING"
    if not isinstance(getattr(logging, text, None), int):
        raise ConfigurationError(f"LogLevel is not a known level: {value!r}")
    return text


def parse_config(values: Mapping[str, Any]) -> MonitorConfig:
    """Validate a decoded configuration mapping and build ``MonitorConfig``."""

    if not isinstance(values, Mapping):
        raise ConfigurationError("Configuration must be a JSON object")

    missing = [key for key in REQUIRED_FIELDS if key not in values]
    if missing:
        raise ConfigurationError("Configuration is missing the following fields: {}".format(
            ", ".join(missing)))

    log_file_path = Path(_require_text(values, "LogFilePath")).expanduser()

    port = _parse_int_option(values.get("Port"), key="Port", minimum=1)
    mail = MailSettings(
        from_addr=_require_text(values, "From"),
        recipient=_require_text(values, "Recipient"),
        server=_require_text(values, "Mailserver"),
        port=port,
        username=_optional_text(values, "Username"),
        password=_optional_text(values, "Password"),
        use_ssl=_parse_bool_option(values.get("UseSSL"),
                                   key="UseSSL",
                                   default=port == SMTPS_PORT),
        timeout=_parse_int_option(values.get("MailTimeout"),
                                  key="MailTimeout",
                                  default=DEFAULT_MAIL_TIMEOUT,
                                  minimum=1),
    )

    return MonitorConfig(
        log_file_path=log_file_path,
        wait=_parse_int_option(values.get("Wait"), key="Wait", minimum=1),
        timeout=_parse_int_option(values.get("Timeout"),
                                  key="Timeout",
                                  minimum=1),
        sites=_parse_sites(values.get("Sites")),
        mail=mail,
        workers=_parse_int_option(values.get("Workers"),
                                  key="Workers",
                                  default=DEFAULT_WORKERS,
                                  minimum=1),
        queue_size=_parse_int_option(values.get("QueueSize"),
                                     key="QueueSize",
                                     default=DEFAULT_QUEUE_SIZE,
                                     minimum=1),
        retry=_parse_bool_option(values.get("Retry"),
                                 key="Retry",
                                 default=False),
        log_level=_parse_log_level(values.get("LogLevel")),
    )


def _apply_mail_env_overrides(config: MonitorConfig) -> MonitorConfig:
    overrides = {}
    username = os.environ.get(MAIL_USERNAME_ENV)
    if username:
        overrides["username"] = username
    password = os.environ.get(MAIL_PASSWORD_ENV)
    if password:
        overrides["password"] = password
    if not overrides:
        return config
    LOGGER.info("config.mail.env_override keys=%s",
                ",".join(sorted(overrides)))
    return replace(config, mail=replace(config.mail, **overrides))


def load_config(path: Union[str, os.PathLike]) -> MonitorConfig:
    """Read and validate the JSON configuration file at ``path``.

    Relative ``LogFilePath`` values resolve against the current directory, the
    same way the path would be opened by the process. ``MAIL_USERNAME`` and
    ``MAIL_PASSWORD`` override the credentials stored in the file.

    :raises ConfigurationError: the file is unreadable, not JSON, or invalid.
    """

    config_path = Path(path).expanduser().resolve()
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to read configuration file {config_path}: {exc}") from exc

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Failed to parse configuration file {config_path}: {exc}") from exc

    config = parse_config(payload)
    LOGGER.info("config.loaded path=%s sites=%d wait=%s timeout=%s",
                config_path, len(config.sites), config.wait, config.timeout)
    return _apply_mail_env_overrides(config)


def configure_logging(level: Union[str, int] = DEFAULT_LOG_LEVEL,
                      *,
                      replace_existing: bool = False) -> logging.Handler:
    """Install the console handler used for diagnostic messages.

    Calling this more than once reuses the handler installed the first time
    unless ``replace_existing`` is set.
    """

    if isinstance(level, str):
        level = getattr(logging, _parse_log_level(level))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    managed_handlers = [
        handler for handler in root_logger.handlers
        if getattr(handler, _LOG_HANDLER_FLAG, False)
    ]
    if replace_existing:
        for handler in managed_handlers:
            root_logger.removeHandler(handler)
            handler.close()
        managed_handlers = []

    formatter = logging.Formatter(_DEFAULT_LOG_FORMAT, _DEFAULT_LOG_DATEFMT)
    if managed_handlers:
        console_handler = managed_handlers[0]
    else:
        console_handler = logging.StreamHandler()
        setattr(console_handler, _LOG_HANDLER_FLAG, True)
        root_logger.addHandler(console_handler)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    return console_handler


def reset_logging_configuration() -> None:
    """Remove handlers previously added by ``configure_logging``."""

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _LOG_HANDLER_FLAG, False):
            root_logger.removeHandler(handler)
            handler.close()
