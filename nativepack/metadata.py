"""Platform metadata (icons, Info.plist, manifest) gathered from a project."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from PIL import Image

from .icons import decode_png, encode_icns, encode_ico
from .util import CopyBuffer, find_file, log

ICON_NAME = "icon.png"
PLIST_NAME = "Info.plist"
MANIFEST_NAMES = ("app.manifest", "manifest")


@dataclass
class DarwinMeta:
    icns: CopyBuffer | None = None
    plist: CopyBuffer | None = None


@dataclass
class WindowsMeta:
    ico: CopyBuffer | None = None
    manifest: CopyBuffer | None = None


@dataclass
class MetaData:
    """Everything a bundler needs besides the binary.

    The plist and manifest are opaque blobs: they are copied, never generated.
    """

    icon: Image.Image | None = None
    darwin: DarwinMeta = field(default_factory=DarwinMeta)
    windows: WindowsMeta = field(default_factory=WindowsMeta)

    def load(self, root: Path, skip: Iterable[str] = (".git", "dist")) -> MetaData:
        """Fill in anything not supplied explicitly by searching ``root``."""
        skip = tuple(skip)
        if self.icon is None:
            icon_path = find_file(root, ICON_NAME, skip=skip)
            if icon_path:
                log(f"[icon] {icon_path}")
                self.icon = decode_png(icon_path.read_bytes())
            else:
                log(f"[warn] Icon not found ({ICON_NAME}) - bundles will use the platform default.")
        if self.icon is not None:
            if self.darwin.icns is None:
                self.darwin.icns = CopyBuffer(encode_icns(self.icon))
            if self.windows.ico is None:
                self.windows.ico = CopyBuffer(encode_ico(self.icon))
        if self.darwin.plist is None:
            self.darwin.plist = _load_blob(root, (PLIST_NAME,), skip)
        if self.windows.manifest is None:
            self.windows.manifest = _load_blob(root, MANIFEST_NAMES, skip)
        return self


def _load_blob(root: Path, names: Iterable[str], skip: tuple[str, ...]) -> CopyBuffer | None:
    for name in names:
        path = find_file(root, name, skip=skip)
        if path:
            log(f"[info] Using {path}")
            return CopyBuffer(path.read_bytes())
    log(f"[info] No {' or '.join(names)} found - using defaults.")
    return None
