"""Per-platform bundle layouts for a compiled binary."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Dict

from .build import Artifact
from .dmg import make_dmg
from .errors import PackagingError
from .metadata import MetaData
from .targets import Platform
from .util import log, write_file

ICNS_NAME = "icon.icns"


def bundle_windows(dest: Path, name: str, binary: bytes, meta: MetaData) -> Path:
    # Icon and manifest were linked in at compile time.
    exe_path = write_file(dest / f"{name}.exe", binary)
    log(f"[win] Executable written to {exe_path}")
    return exe_path


def bundle_macos(dest: Path, name: str, binary: bytes, meta: MetaData) -> Path:
    """Lay out ``<name>.app`` under ``dest`` and image it to ``<name>.dmg``.

    An existing bundle directory is replaced; an existing file of the same
    name is an error.
    """
    bundle_root = dest / f"{name}.app"
    if bundle_root.exists() and not bundle_root.is_dir():
        raise PackagingError(f"Destination {bundle_root} exists and is not a directory")
    if bundle_root.exists():
        shutil.rmtree(bundle_root)
    contents_dir = bundle_root / "Contents"
    macos_dir = contents_dir / "MacOS"
    resources_dir = contents_dir / "Resources"
    macos_dir.mkdir(parents=True, exist_ok=True)
    resources_dir.mkdir(parents=True, exist_ok=True)

    write_file(macos_dir / name, binary, executable=True)

    plist = meta.darwin.plist
    if plist is not None:
        write_file(contents_dir / "Info.plist", plist.read())
    (contents_dir / "PkgInfo").write_text("APPL????", encoding="utf-8")

    icns = meta.darwin.icns
    if icns is not None:
        write_file(resources_dir / ICNS_NAME, icns.read())

    dmg_path = make_dmg(bundle_root, dest / f"{name}.dmg", volume=name)
    log(f"[mac] Bundle written to {bundle_root}")
    log(f"[mac] Disk image written to {dmg_path}")
    return bundle_root


def bundle_linux(dest: Path, name: str, binary: bytes, meta: MetaData) -> Path:
    path = write_file(dest / name, binary, executable=True)
    log(f"[linux] Binary written to {path}")
    return path


def bundle_js(dest: Path, name: str, binary: bytes, meta: MetaData) -> Path:
    path = write_file(dest / f"{name}.wasm", binary)
    log(f"[js] Module written to {path}")
    return path


Bundler = Callable[[Path, str, bytes, MetaData], Path]

BUNDLERS: Dict[Platform, Bundler] = {
    Platform.WINDOWS: bundle_windows,
    Platform.DARWIN: bundle_macos,
    Platform.LINUX: bundle_linux,
    Platform.JS: bundle_js,
}


def bundle(artifact: Artifact, dest: Path, name: str, meta: MetaData) -> Path:
    bundler = BUNDLERS.get(artifact.target.platform)
    if bundler is None:
        raise PackagingError(f"No bundler for platform {artifact.target.platform}")
    return bundler(dest, name, artifact.binary, meta)
