"""Concurrent, sandboxed compilation of every requested target."""

from __future__ import annotations

import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from . import rsrc
from .compiler import Compiler, GoCompiler
from .config import ProjectInfo
from .errors import BuildError, MultiError
from .metadata import MetaData
from .targets import Platform, Target
from .util import copy_tree, log


class Stage(Enum):
    PREPARING = "preparing sandbox"
    INJECTING = "injecting resources"
    COMPILING = "compiling"
    COLLECTING = "reading binary"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Artifact:
    """A compiled binary and the target it was built for."""

    binary: bytes = field(repr=False)
    target: Target


@dataclass
class BuildResult:
    artifacts: list[Artifact]
    error: MultiError | None = None

    def raise_for_errors(self) -> None:
        if self.error is not None:
            raise self.error


class Sandbox:
    """A private copy of the project owned by one target's build."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def prepare(self, source: Path, exclude_top: tuple[str, ...] = ()) -> None:
        if self.path.exists():
            shutil.rmtree(self.path)
        self.path.mkdir(parents=True)
        copy_tree(source, self.path, exclude_top=exclude_top)

    def teardown(self) -> None:
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            log(f"[warn] Could not remove sandbox {self.path}: {exc}")


class Builder:
    def __init__(
        self,
        info: ProjectInfo,
        metadata: MetaData | None = None,
        compiler: Compiler | None = None,
        workdir: Path | None = None,
        keep_sandboxes: bool = False,
    ) -> None:
        self.info = info
        self.metadata = metadata or MetaData()
        self.compiler = compiler or GoCompiler()
        self.workdir = workdir
        self.keep_sandboxes = keep_sandboxes
        self.states: dict[Target, Stage] = {}

    def build(self) -> BuildResult:
        """Build all targets in parallel; wait for every one before returning."""
        targets = list(self.info.targets)
        base = self.workdir or Path(tempfile.mkdtemp(prefix="nativepack-"))
        log(f"[build] package: {self.info.pkg}")
        log(f"[build] sandbox: {base}")

        artifacts: list[Artifact] = []
        errors: list[BuildError] = []
        try:
            with ThreadPoolExecutor(max_workers=max(len(targets), 1)) as pool:
                futures = [pool.submit(self.build_target, target, base / str(target)) for target in targets]
                for future in as_completed(futures):
                    try:
                        artifacts.append(future.result())
                    except BuildError as exc:
                        errors.append(exc)
        finally:
            if self.workdir is None and not self.keep_sandboxes:
                shutil.rmtree(base, ignore_errors=True)

        errors.sort(key=lambda err: targets.index(err.target))
        return BuildResult(artifacts, MultiError(errors) if errors else None)

    def build_target(self, target: Target, path: Path) -> Artifact:
        sandbox = Sandbox(path)
        stage = Stage.PREPARING
        try:
            self.states[target] = stage
            sandbox.prepare(self.info.root, exclude_top=(self.info.dist,))

            stage = self.states[target] = Stage.INJECTING
            self.inject_resources(sandbox, target)

            stage = self.states[target] = Stage.COMPILING
            output = sandbox.path / self.info.dist / str(target) / f"{self.info.name}{target.ext}"
            self.compiler.compile(sandbox.path, self.info.pkg or ".", output, target, self.info.flags.lookup(target))

            stage = self.states[target] = Stage.COLLECTING
            artifact = Artifact(output.read_bytes(), target)
        except Exception as exc:
            self.states[target] = Stage.FAILED
            log(f"[build] {target}: failed while {stage.value}")
            raise BuildError(target, stage.value, exc) from exc
        finally:
            if self.keep_sandboxes:
                log(f"[build] {target}: sandbox kept at {sandbox.path}")
            else:
                sandbox.teardown()

        self.states[target] = Stage.DONE
        log(f"[build] {target}: {len(artifact.binary)} bytes")
        return artifact

    def inject_resources(self, sandbox: Sandbox, target: Target) -> Path | None:
        """Drop a resource object into the package directory for Windows builds."""
        if target.platform is not Platform.WINDOWS:
            return None
        ico = self.metadata.windows.ico
        manifest = self.metadata.windows.manifest
        if ico is None and manifest is None:
            return None
        output = sandbox.path / (self.info.pkg or ".") / f"rsrc_windows_{target.architecture}.syso"
        return rsrc.embed(
            output,
            target.architecture,
            ico.read() if ico is not None else None,
            manifest.read() if manifest is not None else None,
        )
