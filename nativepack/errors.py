"""Error types shared across the packaging pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .targets import Target


class PackagingError(RuntimeError):
    pass


class InputError(PackagingError):
    """Invalid project root, package or target list."""


class IconError(PackagingError):
    """An icon could not be decoded or encoded."""


class ResourceError(PackagingError):
    pass


class CommandError(PackagingError):
    def __init__(self, cmd: list[str], returncode: int | None, output: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        detail = output.strip()
        status = "could not start" if returncode is None else f"failed ({returncode})"
        message = f"Command {status}: {' '.join(cmd)}"
        super().__init__(f"{detail}: {message}" if detail else message)


class BuildError(PackagingError):
    def __init__(self, target: Target, stage: str, cause: BaseException) -> None:
        self.target = target
        self.stage = stage
        self.cause = cause
        super().__init__(f"{target}: {stage}: {cause}")


class BundleError(PackagingError):
    def __init__(self, target: Target, cause: BaseException) -> None:
        self.target = target
        self.cause = cause
        super().__init__(f"{target}: bundling: {cause}")


class MultiError(PackagingError):
    """Combines a number of errors into a single error value."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.errors) == 1:
            return str(self.errors[0])
        lines = ["["]
        for index, err in enumerate(self.errors, start=1):
            lines.append(f"\t{index}: {err}")
        lines.append("]")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.errors)

    @property
    def targets(self) -> list[Target]:
        return [err.target for err in self.errors if hasattr(err, "target")]
