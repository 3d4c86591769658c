"""Config loading for EmberGuard.

``PipelineConfig`` is what ``SecurityPipeline`` consumes; callers may build it
directly. ``load_config()`` is the file-backed convenience path.

Config search order:
  1. ``config_path`` argument (if provided — for testing or explicit override)
  2. EMBERGUARD_CONFIG environment variable (if set)
  3. ``.emberguard/config.yaml`` (working directory — for development)
  4. ``~/.emberguard/config.yaml`` (home directory — for deployments)

Environment variable overrides:
  EMBERGUARD_BLOCK_THRESHOLD — overrides security.inbound_block_threshold
  EMBERGUARD_LOG_LEVEL       — overrides logging.level
  EMBERGUARD_CONFIG          — sets an explicit config file path to try first

Raises SystemExit on parse errors or a missing/unsupported ``version`` field.
If no config file is found, returns default values (safe to run without config).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from typing import Any, NoReturn, Optional

import yaml

from emberguard.models.scan import ThreatLevel
from emberguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Default config search paths (EMBERGUARD_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".emberguard/config.yaml",
    os.path.expanduser("~/.emberguard/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PipelineConfig:
    """Security policy for one ``SecurityPipeline``.

    allowed_senders:             Canonical sender ids permitted to reach the model.
                                 Empty means unrestricted.
    block_group_contexts:        Refuse every message from a multi-party conversation.
    inbound_block_threshold:     Minimum ThreatLevel that blocks an inbound message.
    injection_scanning_enabled:  Run the injection detector on inbound messages.
    credential_scanning_enabled: Run the credential detector on outbound responses.
    """

    allowed_senders: frozenset[str] = frozenset()
    block_group_contexts: bool = True
    inbound_block_threshold: ThreatLevel = ThreatLevel.HIGH
    injection_scanning_enabled: bool = True
    credential_scanning_enabled: bool = True

    def __post_init__(self) -> None:
        # Accept any iterable of ids; store an immutable set.
        if not isinstance(self.allowed_senders, frozenset):
            object.__setattr__(self, "allowed_senders", frozenset(self.allowed_senders))


@dataclass(frozen=True)
class LoggingConfig:
    """Log output configuration (passed to ``configure_logging``)."""

    level: str = "INFO"
    json: bool = True


@dataclass(frozen=True)
class Config:
    """Root configuration object populated from .emberguard/config.yaml.

    All fields have safe defaults — EmberGuard can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    security: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Args:
            raw:  Parsed YAML dict (must already be validated for version field).
            path: Path to the config file.

        Returns:
            Config with all fields populated from raw + defaults for missing fields.

        Raises:
            SystemExit(1): On an invalid threshold, log level, or sender list.
        """
        # ── Security ─────────────────────────────────────────────────────────
        security_raw = raw.get("security") or {}
        if not isinstance(security_raw, dict):
            _config_error(f"'security' in {path} must be a mapping.")

        senders_raw = security_raw.get("allowed_senders") or []
        if isinstance(senders_raw, str) or not isinstance(senders_raw, list):
            _config_error(
                f"security.allowed_senders in {path} must be a list of sender ids."
            )
        if any(s is None or not str(s).strip() for s in senders_raw):
            _config_error(
                f"security.allowed_senders in {path} contains an empty sender id."
            )
        security = PipelineConfig(
            allowed_senders=frozenset(str(s) for s in senders_raw),
            block_group_contexts=bool(security_raw.get("block_group_contexts", True)),
            inbound_block_threshold=_parse_threshold(
                security_raw.get("inbound_block_threshold", "high"),
                source="security.inbound_block_threshold",
            ),
            injection_scanning_enabled=bool(security_raw.get("injection_scanning", True)),
            credential_scanning_enabled=bool(security_raw.get("credential_scanning", True)),
        )

        # ── Logging ──────────────────────────────────────────────────────────
        logging_raw = raw.get("logging") or {}
        if not isinstance(logging_raw, dict):
            _config_error(f"'logging' in {path} must be a mapping.")
        log_config = LoggingConfig(
            level=_parse_log_level(logging_raw.get("level", "INFO"), source="logging.level"),
            json=bool(logging_raw.get("json", True)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            security=security,
            logging=log_config,
            path=path,
        )


# ─── Validation helpers ──────────────────────────────────────────────────────


def _config_error(message: str) -> NoReturn:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _parse_threshold(value: Any, source: str) -> ThreatLevel:
    try:
        return ThreatLevel.parse(value)
    except ValueError as exc:
        _config_error(f"Invalid {source}: {exc}")


def _parse_log_level(value: Any, source: str) -> str:
    level = str(value).strip().upper()
    if level not in VALID_LOG_LEVELS:
        _config_error(
            f"Invalid {source}: '{value}'. Supported values: {sorted(VALID_LOG_LEVELS)}."
        )
    return level


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate EmberGuard configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``EMBERGUARD_CONFIG`` environment variable (if set)
      3. ``.emberguard/config.yaml`` (current working directory)
      4. ``~/.emberguard/config.yaml`` (home directory)

    If no file is found at any of these paths, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Env var overrides are applied afterwards regardless of whether a config
    file was found.

    Returns:
        Config object with all values populated (file values merged onto defaults).

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid threshold or log level (file or env).
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("EMBERGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found — use all defaults ──────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        return _apply_env_overrides(Config.defaults())

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        msg = (
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "EmberGuard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        msg = f"CONFIG ERROR: Could not read {found_path}: {exc}"
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = (
                f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
                "The config file must be a YAML dictionary at the top level."
            )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        msg = (
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if version not in SUPPORTED_VERSIONS:
        msg = (
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    config = _apply_env_overrides(Config.from_dict(raw, path=found_path))

    if not config.security.allowed_senders:
        logger.warning(
            "security.allowed_senders is empty — every sender may reach the model"
        )
    if not config.security.injection_scanning_enabled:
        logger.warning("Injection scanning is disabled")
    if not config.security.credential_scanning_enabled:
        logger.warning("Credential scanning is disabled")

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        allowed_sender_count=len(config.security.allowed_senders),
        inbound_block_threshold=config.security.inbound_block_threshold.label,
    )
    return config


def _apply_env_overrides(config: Config) -> Config:
    """Return ``config`` with environment variable overrides applied.

    Handles:
      EMBERGUARD_BLOCK_THRESHOLD — overrides security.inbound_block_threshold
      EMBERGUARD_LOG_LEVEL       — overrides logging.level

    Called for both file-loaded and default configs so env vars always take
    precedence over any file value.

    Raises:
        SystemExit(1): If either variable is set to an invalid value.
    """
    env_threshold = os.environ.get("EMBERGUARD_BLOCK_THRESHOLD")
    if env_threshold is not None:
        threshold = _parse_threshold(env_threshold, source="EMBERGUARD_BLOCK_THRESHOLD")
        config = replace(config, security=replace(config.security, inbound_block_threshold=threshold))

    env_log_level = os.environ.get("EMBERGUARD_LOG_LEVEL")
    if env_log_level is not None:
        level = _parse_log_level(env_log_level, source="EMBERGUARD_LOG_LEVEL")
        config = replace(config, logging=replace(config.logging, level=level))

    return config
