"""Disk images for macOS bundles, written without hdiutil.

The image is a plain ISO9660 filesystem (Rock Ridge and Joliet carry the
real names and permissions); macOS mounts it as-is. The UDIF ``koly``
trailer of a native .dmg is not written.
"""

from __future__ import annotations

import re
import stat
from pathlib import Path

import pycdlib

from .errors import PackagingError

MAX_DIR_IDENT = 31
MAX_FILE_IDENT = 30  # name + extension
MAX_JOLIET_NAME = 64
MAX_VOLUME_IDENT = 16  # Joliet stores the volume id as UCS-2 in 32 bytes

_NOT_D1 = re.compile(r"[^A-Z0-9_]")


def d1(text: str) -> str:
    return _NOT_D1.sub("_", text.upper())


def volume_ident(name: str) -> str:
    return d1(name)[:MAX_VOLUME_IDENT] or "UNSPECIFIED"


def file_ident(name: str, suffix: str = "") -> str:
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        stem, ext = name, ""
    ext = d1(ext)[:8]
    stem = d1(stem)[:MAX_FILE_IDENT - len(ext) - len(suffix)] + suffix
    return f"{stem}.{ext}"


def dir_ident(name: str, suffix: str = "") -> str:
    return d1(name)[:MAX_DIR_IDENT - len(suffix)] + suffix


class ImageTree:
    """Maps a real directory tree onto ISO9660 level 3 identifiers."""

    def __init__(self, iso: pycdlib.PyCdlib) -> None:
        self.iso = iso
        self.dirs: dict[tuple[str, ...], str] = {(): ""}
        self.used: dict[str, set[str]] = {"": set()}

    def _unique(self, parent: str, make, name: str) -> str:
        used = self.used[parent]
        ident = make(name)
        counter = 0
        while ident in used:
            counter += 1
            ident = make(name, f"_{counter}")
        used.add(ident)
        return ident

    def directory(self, parts: tuple[str, ...]) -> str:
        if parts in self.dirs:
            return self.dirs[parts]
        parent = self.directory(parts[:-1])
        iso_path = f"{parent}/{self._unique(parent, dir_ident, parts[-1])}"
        self.iso.add_directory(iso_path, rr_name=parts[-1], joliet_path=joliet_path(parts))
        self.dirs[parts] = iso_path
        self.used[iso_path] = set()
        return iso_path

    def add_file(self, source: Path, parts: tuple[str, ...]) -> str:
        parent = self.directory(parts[:-1])
        iso_path = f"{parent}/{self._unique(parent, file_ident, parts[-1])};1"
        mode = stat.S_IFREG | (source.stat().st_mode & 0o555)
        self.iso.add_file(
            str(source),
            iso_path=iso_path,
            rr_name=parts[-1],
            joliet_path=joliet_path(parts),
            file_mode=mode,
        )
        return iso_path


def joliet_path(parts: tuple[str, ...]) -> str:
    return "/" + "/".join(part[:MAX_JOLIET_NAME] for part in parts)


def make_dmg(app: Path, output: Path, volume: str = "") -> Path:
    """Write an image of ``app`` (rooted at its parent) to ``output``."""
    if not app.is_dir():
        raise PackagingError(f"{app} is not a directory")
    iso = pycdlib.PyCdlib()
    iso.new(interchange_level=3, vol_ident=volume_ident(volume or app.stem), joliet=3, rock_ridge="1.09")
    try:
        tree = ImageTree(iso)
        base = app.parent
        for path in sorted(app.rglob("*")):
            # Directories are created as parents of the files they hold.
            if path.is_symlink() or not path.is_file():
                continue
            tree.add_file(path, path.relative_to(base).parts)
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("wb") as fh:
            iso.write_fp(fh)
    finally:
        iso.close()
    return output
