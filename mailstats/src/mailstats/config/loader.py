"""Strict loaders and serializers for mailstats configuration documents.

What:
  Locate, parse, validate and serialise ``config.yaml`` and the ``status.yaml``
  sync snapshot.

Why:
  Configuration lives outside the library and is edited by hand. Centralising
  the parsing logic enforces consistent validation so the pipeline and the
  store can trust the resulting models.

How:
  Resolve candidate file locations from an explicit argument, the
  ``MAILSTATS_CONFIG_PATH`` environment variable and the default locations.
  Parse YAML with :func:`yaml.safe_load`, validate with the Pydantic models,
  and cache the runtime configuration until :func:`reset_runtime_config`.

Interfaces:
  - :func:`load_runtime_config` / :func:`get_runtime_config` /
    :func:`reset_runtime_config`: Manage ``config.yaml`` discovery and caching.
  - :func:`load_status` / :func:`dump_status`: Convert ``status.yaml`` bytes
    to and from :class:`SyncStatus`.

Invariants:
  - All external payloads pass strict Pydantic validation before they are
    returned to callers.
  - The runtime configuration cache respects explicit reload requests and the
    precedence order of candidate paths.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig, SyncStatus, ValidationError


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read or validated.

    What:
      Signal issues related specifically to runtime configuration discovery or
      schema validation.

    Why:
      Hosts show a configuration hint for this error instead of a generic sync
      failure.
    """


_CONFIG_ENV = "MAILSTATS_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("/etc/mailstats/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    Args:
      path: Explicit path requested by the caller, or ``None`` to rely on the
        environment and defaults.

    Yields:
      Deduplicated candidate paths, most specific first.
    """

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for raw in candidates:
        candidate = raw.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_mapping(text: str, source: str) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigLoadError(f"{source} must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Load and validate ``config.yaml`` from a specific path.

    Raises:
      RuntimeConfigError: If the file cannot be read, parsed or validated.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    try:
        payload = _parse_mapping(text, str(path))
    except ConfigLoadError as exc:
        raise RuntimeConfigError(str(exc)) from exc
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain, parse it, and return a
      validated :class:`RuntimeConfig`.

    Why:
      The pipeline, the store and the status snapshot all read settings;
      caching avoids repeated disk IO while ``reload`` forces a refresh.

    How:
      Consult the cache unless ``reload`` is requested or a different explicit
      path is given, then walk the candidates until one exists.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no suitable configuration file can be located or
      validated.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(f"Unable to locate config.yaml (searched: {', '.join(searched) or '<none>'})")


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None


def load_status(source: bytes) -> SyncStatus:
    """Parse and validate a ``status.yaml`` payload provided as bytes.

    Raises:
      ConfigLoadError: If parsing or validation fails.
    """

    payload = _parse_mapping(source.decode("utf-8"), "status.yaml")
    try:
        return SyncStatus.model_validate(payload)
    except ValidationError as exc:
        raise ConfigLoadError(str(exc)) from exc


def dump_status(model: SyncStatus) -> bytes:
    """Serialise a :class:`SyncStatus` snapshot into canonical YAML bytes."""

    text = yaml.safe_dump(model.model_dump(mode="json"), sort_keys=True, allow_unicode=True)
    return text.encode("utf-8")
