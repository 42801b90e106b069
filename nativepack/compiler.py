"""The toolchain that turns a package into a binary for one target."""

from __future__ import annotations

import os
from pathlib import Path

from .targets import FlagSet, Target
from .util import sh


class Compiler:
    """Compile ``package`` (relative to ``workdir``) into ``output``.

    Implementations raise ``CommandError`` (or any ``PackagingError``) on
    failure, carrying the toolchain's output.
    """

    def compile(self, workdir: Path, package: str, output: Path, target: Target, flags: FlagSet) -> None:
        raise NotImplementedError


class GoCompiler(Compiler):
    def __init__(self, go: str = "go") -> None:
        self.go = go

    def command(self, package: str, output: Path, flags: FlagSet) -> list[str]:
        return [
            self.go,
            "build",
            "-o",
            str(output),
            "-ldflags",
            " ".join(flags.linker),
            "-gcflags",
            " ".join(flags.compiler),
            package,
        ]

    def environment(self, target: Target) -> dict[str, str]:
        env = dict(os.environ)
        env["GOOS"] = str(target.platform)
        env["GOARCH"] = str(target.architecture)
        return env

    def compile(self, workdir: Path, package: str, output: Path, target: Target, flags: FlagSet) -> None:
        output.parent.mkdir(parents=True, exist_ok=True)
        sh(self.command(package, output, flags), cwd=workdir, env=self.environment(target))
