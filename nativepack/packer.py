"""Top-level coordination: metadata, builds, then bundles."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .build import Artifact, Builder
from .bundle import bundle
from .compiler import Compiler
from .config import ProjectInfo
from .errors import BuildError, BundleError, MultiError, PackagingError
from .metadata import MetaData
from .targets import Target
from .util import log


class Packer:
    """Packs a project into native artifacts for each of its targets."""

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
        self.compiler = compiler
        self.workdir = workdir
        self.keep_sandboxes = keep_sandboxes

    def pack(self) -> dict[Target, Path]:
        """Build and bundle every target.

        Targets that fail do not stop the others; once everything has
        finished, all failures are raised together as a MultiError.
        """
        self.info.resolve()
        log(f"[config] root: {self.info.root}")
        log(f"[config] targets: {', '.join(t.selector for t in self.info.targets)}")
        self.metadata.load(self.info.root, skip=(".git", self.info.dist))

        result = Builder(
            self.info,
            self.metadata,
            compiler=self.compiler,
            workdir=self.workdir,
            keep_sandboxes=self.keep_sandboxes,
        ).build()
        build_errors = list(result.error.errors) if result.error else []
        if not result.artifacts:
            if build_errors:
                raise MultiError(build_errors)
            raise PackagingError("No artifacts to pack.")

        outputs, bundle_errors = self._bundle(result.artifacts)
        errors = build_errors + bundle_errors
        if errors:
            raise MultiError(errors)
        return outputs

    def bundle(self, artifacts: list[Artifact]) -> dict[Target, Path]:
        """Bundle already-built artifacts."""
        if not artifacts:
            raise PackagingError("No artifacts to pack.")
        outputs, errors = self._bundle(artifacts)
        if errors:
            raise MultiError(errors)
        return outputs

    def _bundle(self, artifacts: list[Artifact]) -> tuple[dict[Target, Path], list[BuildError | BundleError]]:
        name = self.info.name or Path(self.info.root).name
        outputs: dict[Target, Path] = {}
        errors: list[BuildError | BundleError] = []
        with ThreadPoolExecutor(max_workers=len(artifacts)) as pool:
            futures = {
                pool.submit(bundle, artifact, self.info.output / str(artifact.target), name, self.metadata): artifact.target
                for artifact in artifacts
            }
            for future in as_completed(futures):
                target = futures[future]
                try:
                    outputs[target] = future.result()
                except Exception as exc:
                    log(f"[warn] Bundling {target} failed: {exc}")
                    errors.append(BundleError(target, exc))
        return outputs, errors
