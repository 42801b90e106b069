"""Process, filesystem and stream helpers used by every stage."""

from __future__ import annotations

import glob
import shutil
import stat
import subprocess
import threading
from pathlib import Path
from typing import Iterable, Mapping

from .errors import CommandError, PackagingError


def log(msg: str) -> None:
    print(msg, flush=True)


def sh(
    cmd: list[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> str:
    """Run a subprocess and return its combined stdout/stderr."""
    log(f"[run] {' '.join(cmd)}")
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            text=True,
            errors="replace",
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as exc:
        raise CommandError(cmd, None, str(exc)) from exc
    if proc.stdout:
        print(proc.stdout, end="", flush=True)
    if check and proc.returncode != 0:
        raise CommandError(cmd, proc.returncode, proc.stdout or "")
    return proc.stdout or ""


class CopyBuffer:
    """In-memory stream that rewinds itself once it has been read to the end.

    Several consumers (the sandbox resource writer, each bundler) read the
    same metadata; every one of them that reads to completion sees the full
    content. ``read()`` returns the rest of the stream and rewinds. Sized
    reads stop at the end and report it with one ``b""`` before rewinding,
    so ``shutil.copyfileobj`` and other read-until-empty loops terminate.
    """

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.cursor = 0
        self._lock = threading.Lock()

    def read(self, size: int | None = -1) -> bytes:
        with self._lock:
            if size is None or size < 0:
                chunk = self.data[self.cursor:]
                self.cursor = 0
                return chunk
            if size == 0:
                return b""
            if self.cursor >= len(self.data):
                self.cursor = 0
                return b""
            end = min(self.cursor + size, len(self.data))
            chunk = self.data[self.cursor:end]
            self.cursor = end
            return chunk

    def getvalue(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"CopyBuffer({len(self.data)} bytes)"


def find_file(
    root: Path,
    name: str,
    is_dir: bool = False,
    skip: Iterable[str] = (".git",),
) -> Path | None:
    """Return the shallowest match for ``name`` below ``root``, or None."""
    if not root or not root.is_dir():
        return None
    skipped = set(skip)
    matches = []
    for path in root.rglob(glob.escape(name)):
        if path.is_dir() != is_dir:
            continue
        rel = path.relative_to(root)
        if any(part in skipped for part in rel.parts[:-1]):
            continue
        matches.append(path)
    if not matches:
        return None

    def depth(path: Path) -> int:
        return len(path.relative_to(root).parts)
    min_depth = min(depth(path) for path in matches)
    shallow = [path for path in matches if depth(path) == min_depth]
    return sorted(shallow)[0].resolve()


def copy_tree(
    src: Path,
    dest: Path,
    exclude_top: Iterable[str] = (),
    exclude_any: Iterable[str] = (".git",),
) -> None:
    """Copy ``src`` into ``dest``, skipping top-level and nested exclusions."""
    top = set(exclude_top)
    anywhere = set(exclude_any)
    src_key = str(src)

    def ignore(directory: str, names: list[str]) -> set[str]:
        skipped = {name for name in names if name in anywhere}
        if directory == src_key:
            skipped.update(name for name in names if name in top)
        return skipped

    shutil.copytree(src_key, str(dest), symlinks=True, ignore=ignore, dirs_exist_ok=True)


def write_file(path: Path, data: bytes, executable: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if executable:
        ensure_executable(path)
    return path


def ensure_executable(path: Path) -> None:
    try:
        mode = path.stat().st_mode
    except FileNotFoundError as exc:
        raise PackagingError(f"Expected executable not found: {path}") from exc
    if mode & stat.S_IXUSR:
        return
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
