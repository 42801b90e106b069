"""Build targets: (platform, architecture) pairs and their tooling flags."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Platform(Enum):
    WINDOWS = "windows"
    DARWIN = "darwin"
    LINUX = "linux"
    JS = "js"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, token: str) -> Platform:
        try:
            return cls(token.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


class Architecture(Enum):
    X86 = "386"
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"
    WASM = "wasm"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, token: str) -> Architecture:
        token = token.strip().lower()
        if token in ("x86", "i386"):
            return cls.X86
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


_SEPARATOR = re.compile(r"[/_]")


@dataclass(frozen=True)
class Target:
    platform: Platform
    architecture: Architecture

    @classmethod
    def parse(cls, text: str) -> Target:
        """Parse ``platform/arch`` or ``platform_arch``; unknown tokens never raise."""
        parts = _SEPARATOR.split(text.strip(), maxsplit=1)
        platform = Platform.parse(parts[0])
        architecture = Architecture.parse(parts[1]) if len(parts) > 1 else Architecture.UNKNOWN
        return cls(platform, architecture)

    @property
    def ext(self) -> str:
        if self.platform is Platform.WINDOWS:
            return ".exe"
        if self.platform is Platform.JS:
            return ".wasm"
        return ""

    @property
    def selector(self) -> str:
        return f"{self.platform}/{self.architecture}"

    @property
    def known(self) -> bool:
        return self.platform is not Platform.UNKNOWN and self.architecture is not Architecture.UNKNOWN

    def __str__(self) -> str:
        return f"{self.platform}_{self.architecture}"


DEFAULT_TARGETS: tuple[Target, ...] = tuple(
    Target.parse(selector)
    for selector in (
        "windows/386",
        "windows/amd64",
        "windows/arm",
        "darwin/amd64",
        "darwin/arm64",
        "linux/386",
        "linux/amd64",
        "linux/arm",
        "linux/arm64",
        "js/wasm",
    )
)

SUPPORTED_TARGETS: frozenset[Target] = frozenset(DEFAULT_TARGETS) | {Target.parse("windows/arm64")}


@dataclass
class FlagSet:
    # go tool compile
    compiler: list[str] = field(default_factory=list)
    # go tool link
    linker: list[str] = field(default_factory=list)

    def merge(self, other: FlagSet) -> FlagSet:
        """Fields given in ``other`` replace ours; empty ones are inherited."""
        return FlagSet(
            compiler=list(other.compiler or self.compiler),
            linker=list(other.linker or self.linker),
        )


class Flags(dict):
    """Maps targets to their tooling flags."""

    def merge(self, other: Flags) -> None:
        for target, flagset in other.items():
            self[target] = self.lookup(target).merge(flagset)

    def lookup(self, target: Target) -> FlagSet:
        flags = self.get(target)
        return flags if flags is not None else FlagSet()


def default_flags() -> Flags:
    # GUI subsystem: no console window on launch.
    return Flags({
        Target.parse("windows/386"): FlagSet(linker=["-H windowsgui"]),
        Target.parse("windows/amd64"): FlagSet(linker=["-H windowsgui"]),
    })
