"""Project configuration: ``packaging.json`` plus command-line overrides."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import InputError
from .targets import DEFAULT_TARGETS, SUPPORTED_TARGETS, FlagSet, Flags, Target, default_flags
from .util import find_file, log

CONFIG_NAME = "packaging.json"
DEFAULT_DIST = "dist"


@dataclass
class ProjectInfo:
    # Root of the project; defaults to the working directory.
    root: Path = field(default_factory=Path.cwd)
    # Package to build, relative to root; defaults to root.
    pkg: str | None = None
    # Output name of the artifacts; defaults to the package name.
    name: str | None = None
    # Output directory for bundles, relative to root.
    dist: str = DEFAULT_DIST
    flags: Flags = field(default_factory=Flags)
    targets: list[Target] = field(default_factory=lambda: list(DEFAULT_TARGETS))

    @property
    def output(self) -> Path:
        return Path(self.root) / (self.dist or DEFAULT_DIST)

    def resolve(self) -> ProjectInfo:
        """Validate and normalise in place; raises InputError before any build starts."""
        try:
            root = Path(self.root).expanduser().resolve(strict=True)
        except (OSError, RuntimeError):
            raise InputError(f"Project root not found: {self.root}") from None
        if not root.is_dir():
            raise InputError(f"Project root is not a directory: {root}")
        self.root = root
        self.dist = self.dist or DEFAULT_DIST

        if self.pkg and self.pkg != ".":
            self.pkg = resolve_package(root, self.pkg, skip=(".git", self.dist))
        else:
            self.pkg = "."
        if not self.name:
            self.name = Path(self.pkg).name if self.pkg != "." else root.name

        self.targets = validate_targets(self.targets)
        return self


def resolve_package(root: Path, pkg: str, skip: tuple[str, ...] = (".git",)) -> str:
    """Return ``pkg`` as a ``./relative/path`` to a directory under ``root``."""
    candidate = (root / pkg).resolve()
    if candidate.is_dir():
        found = candidate
    else:
        found = find_file(root, Path(pkg).name, is_dir=True, skip=skip)
        if found is None:
            raise InputError(f"Package {pkg!r} not found under {root}")
    try:
        rel = found.relative_to(root)
    except ValueError:
        raise InputError(f"Package {pkg!r} is outside the project root {root}") from None
    if not rel.parts:
        return "."
    return f"./{rel.as_posix()}"


def validate_targets(targets: list[Target]) -> list[Target]:
    if not targets:
        raise InputError("No targets to build.")
    unsupported = [target for target in targets if target not in SUPPORTED_TARGETS]
    if unsupported:
        names = ", ".join(target.selector for target in unsupported)
        raise InputError(f"Unsupported targets: {names}")
    unique: list[Target] = []
    for target in targets:
        if target not in unique:
            unique.append(target)
    return unique


def load_config(root: Path) -> dict:
    path = Path(root) / CONFIG_NAME
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise InputError(f"Could not read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise InputError(f"Unexpected {CONFIG_NAME} structure: expected an object.")
    log(f"[config] Loaded {path}")
    return data


def string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    raise InputError(f"{what} must be a string or list of strings.")


def parse_targets(value: Any) -> list[Target]:
    if isinstance(value, str):
        value = value.split(",")
    return [Target.parse(item) for item in string_list(value, "Targets") if item.strip()]


def parse_flags(value: Any) -> Flags:
    if value is None:
        return Flags()
    if not isinstance(value, dict):
        raise InputError("Flags must map platform/arch to {\"Compiler\": [...], \"Linker\": [...]}.")
    flags = Flags()
    for key, entry in value.items():
        if not isinstance(entry, dict):
            raise InputError(f"Flags for {key} must be an object.")
        flags[Target.parse(key)] = FlagSet(
            compiler=string_list(entry.get("Compiler"), f"Flags.{key}.Compiler"),
            linker=string_list(entry.get("Linker"), f"Flags.{key}.Linker"),
        )
    return flags


def load_project(
    root: Path | str,
    pkg: str | None = None,
    name: str | None = None,
    dist: str | None = None,
    targets: list[Target] | None = None,
    flags: Flags | None = None,
) -> ProjectInfo:
    """Build a ProjectInfo from ``packaging.json`` (if any) and explicit overrides."""
    root = Path(root)
    cfg = load_config(root) if root.is_dir() else {}
    info = ProjectInfo(
        root=root,
        pkg=pkg or cfg.get("Package") or None,
        name=name or cfg.get("Name") or None,
        dist=dist or cfg.get("Dist") or DEFAULT_DIST,
        flags=default_flags(),
        targets=list(targets or parse_targets(cfg.get("Targets")) or DEFAULT_TARGETS),
    )
    info.flags.merge(parse_flags(cfg.get("Flags")))
    if flags:
        info.flags.merge(flags)
    return info
