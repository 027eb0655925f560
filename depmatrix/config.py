"""Configuration file loader for depmatrix.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``depmatrix.toml`` — settings under ``[depmatrix]`` table
- ``pyproject.toml`` — settings under ``[tool.depmatrix]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPMATRIX_CONFIG``
2. ``depmatrix.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.depmatrix]`` section

Configuration precedence: defaults < config file < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``depmatrix.toml``)::

    [depmatrix]
    repos = ["geostyler/geostyler-style", "geostyler/geostyler"]
    majors_per_repo = 2
    scan_limit = 20

    [depmatrix.core_packages]
    geostyler-style = "geostyler/geostyler-style"
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from depmatrix.exceptions import ConfigError
from depmatrix.models.repository import Repository
from depmatrix.utils.logger import get_logger
from depmatrix.constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CORE_PACKAGES,
    DEFAULT_MAJORS_PER_REPO,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_REPOS,
    DEFAULT_SCAN_LIMIT,
    DEFAULT_TAG_PAGES,
    DEFAULT_TOKEN_FILE,
)

logger = get_logger("config")

#: Integer options with their lower bounds.
_INT_OPTIONS: Dict[str, int] = {
    "scan_limit": 1,
    "majors_per_repo": 0,
    "tag_pages": 1,
    "max_concurrency": 1,
}

_PATH_OPTIONS = ("cache_dir", "token_file")


@dataclass
class DepMatrixConfig:
    """Parsed and validated depmatrix configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        repos: Ordered catalog as ``owner/name`` slugs.
        core_packages: Core package name mapped to the slug of the
            repository holding its releases.
        scan_limit: Recent target tags visited by fallback scans.
        majors_per_repo: Majors per repository shown as matrix columns.
        tag_pages: Maximum pages of 100 tags fetched per repository.
        max_concurrency: Maximum concurrent GitHub requests.
        cache_dir: Directory of the persistent metadata cache.
        token_file: File holding the GitHub token.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    repos: List[str] = field(default_factory=lambda: list(DEFAULT_REPOS))
    core_packages: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CORE_PACKAGES))
    scan_limit: int = DEFAULT_SCAN_LIMIT
    majors_per_repo: int = DEFAULT_MAJORS_PER_REPO
    tag_pages: int = DEFAULT_TAG_PAGES
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    cache_dir: str = DEFAULT_CACHE_DIR
    token_file: str = DEFAULT_TOKEN_FILE

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    @property
    def catalog(self) -> List[Repository]:
        return [Repository.parse(slug) for slug in self.repos]

    @property
    def core_repositories(self) -> Dict[str, Repository]:
        return {name: Repository.parse(slug) for name, slug in self.core_packages.items()}

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "repos": list(self.repos),
            "core_packages": dict(self.core_packages),
            "scan_limit": self.scan_limit,
            "majors_per_repo": self.majors_per_repo,
            "tag_pages": self.tag_pages,
            "max_concurrency": self.max_concurrency,
            "cache_dir": self.cache_dir,
            "token_file": self.token_file,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    depmatrix_toml = cwd / "depmatrix.toml"
    if depmatrix_toml.is_file():
        logger.debug("Found depmatrix.toml: %s", depmatrix_toml)
        return depmatrix_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_depmatrix_section(pyproject_toml):
        logger.debug("Found [tool.depmatrix] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_depmatrix_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.depmatrix]`` section.

    Unreadable or invalid files count as "no section".
    """
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and "depmatrix" in tool


def load_config(config_path: Optional[Path] = None) -> DepMatrixConfig:
    """Load and validate depmatrix configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`DepMatrixConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepMatrixConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("depmatrix", {})
    else:
        section = raw.get("depmatrix", {})

    if not section:
        logger.debug("Config file found but no depmatrix section, using defaults")
        return DepMatrixConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError("depmatrix section must be a table", config_path=str(resolved))

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> DepMatrixConfig:
    """Parse and validate the ``[depmatrix]`` or ``[tool.depmatrix]`` table.

    Raises:
        ConfigError: Unknown keys, incorrect types or out-of-range values.
    """
    config = DepMatrixConfig()

    known_top = {"repos", "core_packages", *_INT_OPTIONS, *_PATH_OPTIONS}

    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "repos" in section:
        val = section["repos"]
        if not isinstance(val, list) or not all(isinstance(item, str) for item in val):
            raise ConfigError(
                "repos must be a list of 'owner/name' strings",
                config_path=config_path,
                option="repos",
            )
        for slug in val:
            _check_slug(slug, config_path=config_path, option="repos")
        if len(set(val)) != len(val):
            raise ConfigError(
                "repos must not contain duplicates",
                config_path=config_path,
                option="repos",
            )
        config.repos = list(val)

    if "core_packages" in section:
        val = section["core_packages"]
        if not isinstance(val, dict) or not all(isinstance(v, str) for v in val.values()):
            raise ConfigError(
                "core_packages must be a table of package name to 'owner/name'",
                config_path=config_path,
                option="core_packages",
            )
        for slug in val.values():
            _check_slug(slug, config_path=config_path, option="core_packages")
        config.core_packages = dict(val)

    for option, minimum in _INT_OPTIONS.items():
        if option not in section:
            continue
        val = section[option]
        # bool is an int subclass; reject it explicitly.
        if isinstance(val, bool) or not isinstance(val, int):
            raise ConfigError(
                f"{option} must be an integer, got {type(val).__name__}",
                config_path=config_path,
                option=option,
            )
        if val < minimum:
            raise ConfigError(
                f"{option} must be >= {minimum}, got {val}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, val)

    for option in _PATH_OPTIONS:
        if option not in section:
            continue
        val = section[option]
        if not isinstance(val, str) or not val.strip():
            raise ConfigError(
                f"{option} must be a non-empty string",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, val)

    return config


def _check_slug(slug: str, *, config_path: str, option: str) -> None:
    try:
        Repository.parse(slug)
    except ValueError as exc:
        raise ConfigError(str(exc), config_path=config_path, option=option) from exc
