"""COFF resource objects (``.syso``) carrying icon and manifest resources.

The Go linker links any ``*.syso`` file in the package directory, so writing
one next to the sources before ``go build`` is enough to give the resulting
Windows executable an icon.

Icons are stored as one RT_ICON resource per image plus an RT_GROUP_ICON
describing them: see
https://devblogs.microsoft.com/oldnewthing/20120720-00/?p=7083
"""

from __future__ import annotations

import bisect
import itertools
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Union

from .binutil import dump, fixed, hidden, offsets, size_of, u8, u16, u32
from .errors import ResourceError
from .icons import ICON_TYPE, decode_ico
from .targets import Architecture

RT_ICON = 3
RT_GROUP_ICON = RT_ICON + 11
RT_MANIFEST = 24

MASK_SUBDIRECTORY = 1 << 31
LANG_EN_US = 0x0409
MANIFEST_ID = 1  # CREATEPROCESS_MANIFEST_RESOURCE_ID
DATA_ALIGNMENT = 8

# machine, relocation type (ADDR32NB / DIR32NB)
MACHINES = {
    Architecture.X86: (0x014C, 0x07),
    Architecture.AMD64: (0x8664, 0x03),
    Architecture.ARM: (0x01C4, 0x02),
    Architecture.ARM64: (0xAA64, 0x02),
}


@dataclass
class FileHeader:
    machine: int = u16()
    number_of_sections: int = u16(1)
    time_date_stamp: int = u32()
    pointer_to_symbol_table: int = u32()
    number_of_symbols: int = u32(1)
    size_of_optional_header: int = u16()
    characteristics: int = u16(0x0104)  # 32BIT_MACHINE | LINE_NUMS_STRIPPED, as windres emits


@dataclass
class SectionHeader:
    name: bytes = fixed(8, b".rsrc")
    virtual_size: int = u32()
    virtual_address: int = u32()
    size_of_raw_data: int = u32()
    pointer_to_raw_data: int = u32()
    pointer_to_relocations: int = u32()
    pointer_to_line_numbers: int = u32()
    number_of_relocations: int = u16()
    number_of_line_numbers: int = u16()
    characteristics: int = u32(0x40000040)  # INITIALIZED_DATA | MEM_READ


@dataclass
class DirEntry:
    name_or_id: int = u32()
    offset_to_data: int = u32()


@dataclass
class Dir:
    characteristics: int = u32()
    time_date_stamp: int = u32()
    major_version: int = u16()
    minor_version: int = u16()
    number_of_named_entries: int = u16()
    number_of_id_entries: int = u16()
    entries: list[DirEntry] = field(default_factory=list)
    dirs: list[Dir] = field(default_factory=list)


@dataclass
class DataEntry:
    offset_to_data: int = u32()
    size: int = u32()
    code_page: int = u32()
    reserved: int = u32()


@dataclass
class Relocation:
    virtual_address: int = u32()
    symbol_index: int = u32()
    type: int = u16()


@dataclass
class Symbol:
    name: bytes = fixed(8, b".rsrc")
    value: int = u32()
    section_number: int = u16(1)
    type: int = u16()
    storage_class: int = u8(3)  # IMAGE_SYM_CLASS_STATIC
    auxiliary_count: int = u8()


@dataclass
class StringTable:
    length: int = u32(4)  # empty table still counts its own header


@dataclass
class GroupIconEntry:
    width: int = u8()
    height: int = u8()
    colors: int = u8()
    reserved: int = u8()
    planes: int = u16()
    bit_count: int = u16()
    bytes_in_res: int = u32()
    id: int = u16()


@dataclass
class IconGroup:
    reserved: int = u16()
    type: int = u16(ICON_TYPE)
    count: int = u16()
    entries: list[GroupIconEntry] = field(default_factory=list)


Resource = Union[bytes, IconGroup]


@dataclass
class ResourceData:
    """A resource body followed by zero padding up to DATA_ALIGNMENT."""

    body: Resource
    padding: bytes = b""

    @classmethod
    def aligned(cls, body: Resource) -> ResourceData:
        return cls(body, bytes(-size_of(body) % DATA_ALIGNMENT))


@dataclass
class Coff:
    file_header: FileHeader = field(default_factory=FileHeader)
    section_header: SectionHeader = field(default_factory=SectionHeader)
    # type -> id -> language
    dir: Dir = field(default_factory=Dir)
    data_entries: list[DataEntry] = field(default_factory=list)
    data: list[ResourceData] = field(default_factory=list)
    relocations: list[Relocation] = field(default_factory=list)
    symbols: list[Symbol] = field(default_factory=lambda: [Symbol()])
    strings: StringTable = field(default_factory=StringTable)
    relocation_type: int = hidden(0)

    @classmethod
    def for_arch(cls, arch: Architecture) -> Coff:
        try:
            machine, relocation_type = MACHINES[arch]
        except KeyError:
            raise ResourceError(f"architecture {arch} not supported") from None
        return cls(file_header=FileHeader(machine=machine), relocation_type=relocation_type)

    def add_resource(self, kind: int, resource_id: int, data: Resource) -> None:
        self.relocations.append(Relocation(type=self.relocation_type))

        kinds = [entry.name_or_id for entry in self.dir.entries]
        index = bisect.bisect_left(kinds, kind)
        if index == len(kinds) or kinds[index] != kind:
            self.dir.entries.insert(index, DirEntry(name_or_id=kind))
            self.dir.dirs.insert(index, Dir())
            self.dir.number_of_id_entries += 1

        kind_dir = self.dir.dirs[index]
        ids = [entry.name_or_id for entry in kind_dir.entries]
        position = bisect.bisect_left(ids, resource_id)
        if position < len(ids) and ids[position] == resource_id:
            raise ResourceError(f"duplicate resource {kind}/{resource_id}")
        kind_dir.entries.insert(position, DirEntry(name_or_id=resource_id))
        kind_dir.dirs.insert(position, Dir(
            number_of_id_entries=1,
            entries=[DirEntry(name_or_id=LANG_EN_US)],
        ))
        kind_dir.number_of_id_entries += 1

        # Data entries are laid out in the same order as the directory leaves.
        leaf = sum(len(d.entries) for d in self.dir.dirs[:index]) + position
        self.data_entries.insert(leaf, DataEntry(size=size_of(data)))
        self.data.insert(leaf, ResourceData.aligned(data))

    def leaves(self) -> list[DirEntry]:
        return [
            entry
            for kind_dir in self.dir.dirs
            for id_dir in kind_dir.dirs
            for entry in id_dir.entries
        ]

    def freeze(self) -> None:
        """Fill in the pointers and offsets that depend on the final layout."""
        leaves = iter(self.leaves())
        start = 0
        for path, offset in offsets(self):
            relative = offset - start
            if path == ("dir",):
                self.section_header.pointer_to_raw_data = offset
                start = offset
            elif path == ("relocations",):
                self.section_header.pointer_to_relocations = offset
                self.section_header.size_of_raw_data = relative
            elif path == ("symbols",):
                self.file_header.pointer_to_symbol_table = offset
            elif len(path) == 3 and path[:2] == ("dir", "dirs"):
                self.dir.entries[path[2]].offset_to_data = MASK_SUBDIRECTORY | relative
            elif len(path) == 5 and path[:2] == ("dir", "dirs") and path[3] == "dirs":
                self.dir.dirs[path[2]].entries[path[4]].offset_to_data = MASK_SUBDIRECTORY | relative
            elif len(path) == 2 and path[0] == "data_entries":
                next(leaves).offset_to_data = relative
            elif len(path) == 3 and path[0] == "data_entries" and path[2] == "offset_to_data":
                self.relocations[path[1]].virtual_address = relative
            elif len(path) == 2 and path[0] == "data":
                self.data_entries[path[1]].offset_to_data = relative
        self.section_header.number_of_relocations = len(self.relocations)
        self.file_header.number_of_symbols = len(self.symbols)

    def to_bytes(self) -> bytes:
        return dump(self)


def id_generator() -> Callable[[], int]:
    counter = itertools.count(1)

    def next_id() -> int:
        value = next(counter)
        if value > 0xFFFF:
            raise ResourceError("resource ids exhausted")
        return value
    return next_id


def add_icon(coff: Coff, ico: bytes, next_id: Callable[[], int]) -> IconGroup:
    icons = decode_ico(ico)
    group = IconGroup(count=len(icons))
    for icon in icons:
        resource_id = next_id()
        coff.add_resource(RT_ICON, resource_id, icon.payload(ico))
        group.entries.append(GroupIconEntry(
            width=icon.width,
            height=icon.height,
            colors=icon.colors,
            reserved=icon.reserved,
            planes=icon.planes,
            bit_count=icon.bit_count,
            bytes_in_res=icon.size,
            id=resource_id,
        ))
    coff.add_resource(RT_GROUP_ICON, next_id(), group)
    return group


def build(arch: Architecture, ico: bytes | None = None, manifest: bytes | None = None) -> Coff:
    coff = Coff.for_arch(arch)
    if manifest:
        coff.add_resource(RT_MANIFEST, MANIFEST_ID, bytes(manifest))
    if ico:
        add_icon(coff, bytes(ico), id_generator())
    coff.freeze()
    return coff


def embed(output: Path, arch: Architecture, ico: bytes | None = None, manifest: bytes | None = None) -> Path:
    """Write a resource object for ``arch`` to ``output``."""
    data = build(arch, ico, manifest).to_bytes()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    return output
