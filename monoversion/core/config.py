"""Workspace configuration — ``monoversion.json`` discovery, loading and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from monoversion.exceptions import ConfigError, ConfigNotFoundError

CONFIG_NAME = "monoversion.json"
RUSH_CONFIG_NAME = "rush.json"
RUSH_LOCK_DIRECTORY = "./common/config/rush"

ALL = "*"

PackageRules = Union[Literal["*"], list[str]]
LockValue = Union[str, list[str]]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class IncludeOrExcludeRules(_CamelModel):
    """Dependency names to include or exclude, common or per package."""

    common: list[str] = Field(default_factory=list)
    package: dict[str, PackageRules] = Field(default_factory=dict)

    @property
    def is_configured(self) -> bool:
        return bool(self.common) or bool(self.package)


class LockRules(_CamelModel):
    """Manual version locks; per-package entries win over common ones."""

    common: dict[str, LockValue] = Field(default_factory=dict)
    package: dict[str, dict[str, LockValue]] = Field(default_factory=dict)


class DependencyPolicy(_CamelModel):
    include: IncludeOrExcludeRules = Field(default_factory=IncludeOrExcludeRules)
    exclude: IncludeOrExcludeRules = Field(default_factory=IncludeOrExcludeRules)
    lock: LockRules = Field(default_factory=LockRules)


class WorkspaceConfig(_CamelModel):
    """Contents of ``monoversion.json``."""

    package_manager: str = "pnpm"
    lock_file_directory_path: str | None = None
    # "exact" locks peer dependencies to the target version, "caret" to ^version
    peer_version_default: Literal["exact", "caret"] = "exact"
    dependencies: DependencyPolicy = Field(default_factory=DependencyPolicy)

    @field_validator("package_manager", mode="before")
    @classmethod
    def _strip_whitespace(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    def peer_target(self, version: str) -> str:
        """Default peer dependency target for a locked *version*."""
        if self.peer_version_default == "caret" and not version.startswith("^"):
            return f"^{version}"
        return version

    def with_package_filters(
        self,
        include_packages: list[str] | tuple[str, ...] = (),
        exclude_packages: list[str] | tuple[str, ...] = (),
    ) -> WorkspaceConfig:
        """Return a copy where the given packages are included/excluded wholesale."""
        policy = self.dependencies
        include = policy.include
        exclude = policy.exclude
        if include_packages:
            include = include.model_copy(
                update={"package": {**include.package, **{p: ALL for p in include_packages}}}
            )
        if exclude_packages:
            exclude = exclude.model_copy(
                update={"package": {**exclude.package, **{p: ALL for p in exclude_packages}}}
            )
        return self.model_copy(
            update={"dependencies": policy.model_copy(update={"include": include, "exclude": exclude})}
        )


def default_config(package_manager: str = "pnpm", directory: Path | None = None) -> WorkspaceConfig:
    """Build the default config, pointing at rush's lockfile when *directory* is a rush repo."""
    lock_dir = None
    if directory is not None and (directory / RUSH_CONFIG_NAME).is_file():
        lock_dir = RUSH_LOCK_DIRECTORY
    return WorkspaceConfig(package_manager=package_manager, lock_file_directory_path=lock_dir)


def find_config_dir(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) to the directory holding ``monoversion.json``.

    The search stops below the user's home directory and at the filesystem root.
    """
    current = (start or Path.cwd()).resolve()
    home = Path.home().resolve()
    while True:
        if (current / CONFIG_NAME).is_file():
            return current
        parent = current.parent
        if parent == current or parent == home:
            return None
        current = parent


def load_config(directory: Path) -> WorkspaceConfig:
    """Load and validate ``monoversion.json`` from *directory*.

    Raises :class:`ConfigNotFoundError` if the file is missing and
    :class:`ConfigError` if it is not valid.
    """
    path = directory / CONFIG_NAME
    if not path.is_file():
        raise ConfigNotFoundError(f"{path} not found")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    try:
        return WorkspaceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e


def init_config(directory: Path, config: WorkspaceConfig | None = None) -> Path:
    """Write *config* (default config if omitted) to ``directory/monoversion.json``."""
    config = config or default_config(directory=directory)
    path = directory / CONFIG_NAME
    data = config.model_dump(by_alias=True, exclude_none=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def resolve_lock_dir(root: Path, config: WorkspaceConfig) -> Path:
    """Directory holding the lockfile; relative paths are resolved against *root*."""
    raw = config.lock_file_directory_path
    if not raw:
        return root
    lock_dir = Path(raw)
    if lock_dir.is_absolute():
        return lock_dir
    return (root / lock_dir).resolve()
