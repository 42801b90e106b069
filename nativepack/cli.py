"""Command line front end."""

from __future__ import annotations

import argparse
import shlex
import sys
from pathlib import Path

from .config import load_project, parse_targets
from .errors import InputError, PackagingError
from .packer import Packer
from .targets import FlagSet, Flags, Target
from .util import log


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nativepack",
        description="Compile a project for several targets and bundle each one natively.",
    )
    parser.add_argument("root", type=Path, help="project root")
    parser.add_argument("pkg", nargs="?", help="package to build, relative to root (default: root)")
    parser.add_argument("name", nargs="?", help="artifact name (default: package name)")
    parser.add_argument("--dist", help="output directory, relative to root (default: dist)")
    parser.add_argument("--targets", help="comma separated platform/arch list")
    parser.add_argument(
        "--ldflags",
        action="append",
        default=[],
        metavar="TARGET=FLAGS",
        help="linker flags for one target, e.g. windows/amd64='-H windowsgui'",
    )
    parser.add_argument("--gcflags", action="append", default=[], metavar="TARGET=FLAGS", help="compiler flags for one target")
    parser.add_argument("--keep-sandbox", action="store_true", help="leave build sandboxes on disk")
    return parser.parse_args(argv)


def parse_flag_overrides(ldflags: list[str], gcflags: list[str]) -> Flags:
    flags = Flags()
    for values, attr in ((ldflags, "linker"), (gcflags, "compiler")):
        for value in values:
            selector, sep, text = value.partition("=")
            if not sep:
                raise InputError(f"Expected TARGET=FLAGS, got {value!r}")
            target = Target.parse(selector)
            flagset = flags.setdefault(target, FlagSet())
            setattr(flagset, attr, shlex.split(text))
    return flags


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        info = load_project(
            args.root,
            pkg=args.pkg,
            name=args.name,
            dist=args.dist,
            targets=parse_targets(args.targets) if args.targets else None,
            flags=parse_flag_overrides(args.ldflags, args.gcflags) or None,
        )
        outputs = Packer(info, keep_sandboxes=args.keep_sandbox).pack()
    except PackagingError as err:
        log(f"ERROR: {err}")
        return 1
    except Exception as err:  # pragma: no cover
        log(f"UNEXPECTED ERROR: {err}")
        return 1
    for target, path in sorted(outputs.items(), key=lambda item: str(item[0])):
        log(f"[done] {target}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
