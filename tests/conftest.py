"""Shared fixtures: generated icons, throwaway projects and a fake toolchain."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from nativepack.compiler import Compiler
from nativepack.errors import CommandError
from nativepack.targets import FlagSet, Target


def make_png(size: int = 512) -> bytes:
    image = Image.new("RGBA", (size, size))
    pixels = image.load()
    for y in range(size):
        for x in range(size):
            pixels[x, y] = (x * 255 // size, y * 255 // size, 128, 255)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="session")
def icon_png() -> bytes:
    return make_png(512)


@pytest.fixture
def icon_image(icon_png: bytes) -> Image.Image:
    return Image.open(io.BytesIO(icon_png)).convert("RGBA")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small Go-shaped project without an icon."""
    root = tmp_path / "hello"
    (root / "cmd" / "hello").mkdir(parents=True)
    (root / "go.mod").write_text("module example.com/hello\n\ngo 1.21\n", encoding="utf-8")
    (root / "cmd" / "hello" / "main.go").write_text("package main\n\nfunc main() {}\n", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (root / "dist").mkdir()
    (root / "dist" / "stale.txt").write_text("old output\n", encoding="utf-8")
    return root


@pytest.fixture
def project_with_icon(project: Path, icon_png: bytes) -> Path:
    (project / "assets").mkdir()
    (project / "assets" / "icon.png").write_bytes(icon_png)
    return project


class FakeCompiler(Compiler):
    """Writes a recognisable binary, or fails for the targets in ``fail``."""

    def __init__(self, fail: tuple[str, ...] = ()) -> None:
        self.fail = {Target.parse(selector) for selector in fail}
        self.calls: list[dict] = []

    def compile(self, workdir: Path, package: str, output: Path, target: Target, flags: FlagSet) -> None:
        self.calls.append({
            "workdir": workdir,
            "package": package,
            "output": output,
            "target": target,
            "flags": flags,
            "files": sorted(p.relative_to(workdir).as_posix() for p in workdir.rglob("*") if p.is_file()),
        })
        if target in self.fail:
            raise CommandError(["go", "build", package], 2, f"{package}: syntax error: unexpected }}")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(f"binary:{target}".encode())

    def call_for(self, target: Target) -> dict:
        return next(call for call in self.calls if call["target"] == target)


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()
