"""Configuration loading with pydantic-settings.

Sources, highest precedence first:
1. Direct kwargs
2. Environment variables (SNAPINDEX__SECTION__KEY)
3. Repo config (.snapindex/config.yaml)
4. Global config (~/.config/snapindex/config.yaml)
5. Built-in defaults
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from snapindex.config.constants import DATA_DIR_NAME, DEFAULT_PROFILE, INDEX_DIR_NAME
from snapindex.config.models import (
    EmbeddingConfig,
    IndexConfig,
    LoggingConfig,
    ProfileConfig,
    RetrievalConfig,
    SegmenterConfig,
    SnapIndexConfig,
)
from snapindex.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/snapindex/config.yaml").expanduser()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class SnapIndexSettings(BaseSettings):
        """Root config. Env vars: SNAPINDEX__LOGGING__LEVEL, SNAPINDEX__EMBEDDING__PROVIDER, etc."""

        model_config = SettingsConfigDict(
            env_prefix="SNAPINDEX__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        index: IndexConfig = IndexConfig()
        segmenter: SegmenterConfig = SegmenterConfig()
        embedding: EmbeddingConfig = EmbeddingConfig()
        retrieval: RetrievalConfig = RetrievalConfig()
        profiles: dict[str, ProfileConfig] = {}

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return SnapIndexSettings


def load_config(repo_root: Path | None = None, **kwargs: Any) -> SnapIndexConfig:
    """Load config: defaults < global yaml < repo yaml < env vars < kwargs.

    Args:
        repo_root: Repository root to load config from.
                   Defaults to current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    repo_root = repo_root or Path.cwd()

    yaml_config = _deep_merge(
        _load_yaml(GLOBAL_CONFIG_PATH),
        _load_yaml(repo_root / DATA_DIR_NAME / "config.yaml"),
    )

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return SnapIndexConfig.model_validate(settings.model_dump())


def get_index_dir(repo_root: Path, config: SnapIndexConfig, profile: str | None = None) -> Path:
    """Directory holding the manifest, store and lock for one profile.

    Raises:
        ConfigError: If the named profile is not configured.
    """
    name = profile or DEFAULT_PROFILE
    if profile and profile != DEFAULT_PROFILE and profile not in config.profiles:
        raise ConfigError.invalid_value(
            "profile", profile, f"unknown profile; configured: {sorted(config.profiles)}"
        )
    if config.index.index_path:
        base = Path(config.index.index_path).expanduser()
    else:
        base = repo_root / DATA_DIR_NAME / INDEX_DIR_NAME
    return base / name
