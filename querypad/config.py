"""Profile configuration: the ProfileStore plus TOML loading helpers."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Iterator, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ProfileNotFound
from .models import COMMON_KEY, DEFAULT_KEY, Profile

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "querypad" / "config.toml"

DRIVER_KEY = "driver"
URL_KEY = "url"
USER_KEY = "user"
PASSWORD_KEY = "password"
MAX_LINE_KEY = "max_count"
MAX_LINE_DEFAULT = 1000


def _as_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ProfileConfig(BaseModel):
    """Raw settings collected for one profile key."""

    key: str
    settings: dict[str, str] = Field(default_factory=dict)

    @field_validator("settings", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {str(name): _as_text(item) for name, item in value.items()}
        return value

    def missing(self) -> tuple[str, ...]:
        """Mandatory settings absent from this profile."""

        return tuple(name for name in (DRIVER_KEY, URL_KEY) if name not in self.settings)

    def to_profile(self) -> Profile:
        return Profile(
            key=self.key,
            driver=self.settings[DRIVER_KEY],
            url=self.settings[URL_KEY],
            user=self.settings.get(USER_KEY),
            password=self.settings.get(PASSWORD_KEY),
            properties=dict(self.settings),
        )


class ProfileStore:
    """Named connection profiles and the global result-row cap.

    Profiles are resolved once at construction and never change afterwards.
    Profiles missing ``driver`` or ``url`` are logged and left out; the rest
    of the store stays usable.
    """

    def __init__(self, configs: Mapping[str, ProfileConfig]) -> None:
        common = configs.get(COMMON_KEY)
        self._common: dict[str, str] = dict(common.settings) if common else {}
        profiles: dict[str, Profile] = {}
        for key, config in configs.items():
            if key == COMMON_KEY:
                continue
            missing = config.missing()
            if missing:
                LOG.warning(
                    "%s will be ignored. %s.%s and %s.%s are mandatory.",
                    key,
                    key,
                    DRIVER_KEY,
                    key,
                    URL_KEY,
                    extra={"profile": key, "missing": missing},
                )
                continue
            profiles[key] = config.to_profile()
        self._profiles = profiles
        LOG.debug("Loaded profiles: %s", sorted(profiles))

    @classmethod
    def from_properties(cls, properties: Mapping[str, object]) -> ProfileStore:
        """Build a store from ``<profile>.<setting>`` keyed properties."""

        grouped: dict[str, dict[str, object]] = {}
        for name, value in properties.items():
            prefix, dot, setting = str(name).partition(".")
            if not dot or not prefix or not setting:
                LOG.debug("Ignoring property without a profile prefix: %s", name)
                continue
            grouped.setdefault(prefix, {})[setting] = value
        return cls({key: ProfileConfig(key=key, settings=settings) for key, settings in grouped.items()})

    @classmethod
    def from_config(cls, config: AppConfig) -> ProfileStore:
        return cls.from_properties(config.properties())

    def resolve(self, key: str) -> Profile:
        """Return the profile for ``key`` or raise :class:`ProfileNotFound`."""

        try:
            return self._profiles[key]
        except KeyError:
            raise ProfileNotFound(key) from None

    def max_rows(self) -> int:
        """Row cap from ``common.max_count``; 1000 when absent or invalid."""

        raw = self._common.get(MAX_LINE_KEY)
        if raw is None:
            return MAX_LINE_DEFAULT
        try:
            value = int(raw.strip())
        except ValueError:
            LOG.warning("Invalid %s.%s=%r, using %d", COMMON_KEY, MAX_LINE_KEY, raw, MAX_LINE_DEFAULT)
            return MAX_LINE_DEFAULT
        if value <= 0:
            LOG.warning("Invalid %s.%s=%r, using %d", COMMON_KEY, MAX_LINE_KEY, raw, MAX_LINE_DEFAULT)
            return MAX_LINE_DEFAULT
        return value

    def keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._profiles))

    def __contains__(self, key: object) -> bool:
        return key in self._profiles

    def __iter__(self) -> Iterator[Profile]:
        return iter(self._profiles[key] for key in self.keys())

    def __len__(self) -> int:
        return len(self._profiles)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    execution_id: str = "pad"
    profiles: dict[str, dict[str, str]] = Field(default_factory=lambda: _default_profiles())

    @field_validator("profiles", mode="before")
    @classmethod
    def _stringify_profiles(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                str(key): {str(name): _as_text(item) for name, item in settings.items()}
                for key, settings in value.items()
                if isinstance(settings, Mapping)
            }
        return value

    def properties(self) -> dict[str, str]:
        """Flatten ``profiles`` into ``<profile>.<setting>`` keys."""

        return {
            f"{key}.{name}": value
            for key, settings in self.profiles.items()
            for name, value in settings.items()
        }

    def with_profile(self, key: str, **settings: object) -> AppConfig:
        """Return a copy with one profile replaced."""

        profiles = dict(self.profiles)
        profiles[key] = {name: _as_text(value) for name, value in settings.items()}
        return self.model_copy(update={"profiles": profiles})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        with CONFIG_FILE.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.exception("Failed to read %s, using defaults", CONFIG_FILE)
        return AppConfig()

    data: dict[str, object] = {}
    for name in ("theme", "execution_id"):
        value = raw.get(name)
        if isinstance(value, str):
            data[name] = value
    profiles = raw.get("profiles")
    if isinstance(profiles, dict):
        data["profiles"] = profiles
    try:
        return AppConfig(**data)
    except ValidationError:
        LOG.exception("Invalid configuration in %s, using defaults", CONFIG_FILE)
        return AppConfig()


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'theme = "{config.theme}"',
        f'execution_id = "{config.execution_id}"',
    ]
    for key in sorted(config.profiles):
        lines.append("")
        lines.append(f"[profiles.{key}]")
        for name, value in config.profiles[key].items():
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            lines.append(f'{name} = "{escaped}"')
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _default_profiles() -> dict[str, dict[str, str]]:
    """Profiles used on first run before config is customized."""

    return {
        DEFAULT_KEY: {
            DRIVER_KEY: "asyncpg",
            URL_KEY: "postgresql://localhost:5432/postgres",
            USER_KEY: "postgres",
            PASSWORD_KEY: "",
        },
        COMMON_KEY: {MAX_LINE_KEY: str(MAX_LINE_DEFAULT)},
    }


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "MAX_LINE_DEFAULT",
    "ProfileConfig",
    "ProfileStore",
    "load_config",
    "save_config",
]
