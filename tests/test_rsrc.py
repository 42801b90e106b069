import struct

import pytest

from nativepack import rsrc
from nativepack.binutil import dump, size_of
from nativepack.errors import IconError, ResourceError
from nativepack.icons import decode_ico, encode_ico
from nativepack.targets import Architecture


@pytest.fixture
def ico(icon_image) -> bytes:
    return encode_ico(icon_image)


def resources(coff, kind):
    index = [entry.name_or_id for entry in coff.dir.entries].index(kind)
    return coff.dir.dirs[index]


def test_icon_ids_are_one_based_and_increasing(ico):
    coff = rsrc.build(Architecture.AMD64, ico)
    icon_ids = [entry.name_or_id for entry in resources(coff, rsrc.RT_ICON).entries]
    group_ids = [entry.name_or_id for entry in resources(coff, rsrc.RT_GROUP_ICON).entries]

    assert icon_ids == [1, 2, 3, 4, 5, 6]
    assert group_ids == [7]


def test_group_describes_every_icon(ico):
    coff = rsrc.build(Architecture.AMD64, ico)
    group = next(data.body for data in coff.data if isinstance(data.body, rsrc.IconGroup))
    icons = decode_ico(ico)

    assert (group.reserved, group.type, group.count) == (0, 1, len(icons))
    assert group.count == len(resources(coff, rsrc.RT_ICON).entries)
    assert [entry.id for entry in group.entries] == [1, 2, 3, 4, 5, 6]
    assert [entry.bytes_in_res for entry in group.entries] == [icon.size for icon in icons]
    assert size_of(group) == 6 + 14 * len(icons)


def test_each_build_starts_ids_afresh(ico):
    first = rsrc.build(Architecture.X86, ico)
    second = rsrc.build(Architecture.ARM64, ico)
    assert [e.name_or_id for e in resources(first, rsrc.RT_ICON).entries] == \
        [e.name_or_id for e in resources(second, rsrc.RT_ICON).entries]


def test_icon_payloads_are_embedded_verbatim(ico):
    coff = rsrc.build(Architecture.AMD64, ico)
    data = coff.to_bytes()
    raw = coff.section_header.pointer_to_raw_data
    icons = decode_ico(ico)

    for entry, icon in zip(coff.data_entries, icons):
        start = raw + entry.offset_to_data
        assert data[start:start + entry.size] == icon.payload(ico)


def test_coff_headers(ico):
    coff = rsrc.build(Architecture.AMD64, ico)
    data = coff.to_bytes()

    machine, sections, _, symtab, symbols, optional, _ = struct.unpack_from("<HHIIIHH", data)
    assert (machine, sections, symbols, optional) == (0x8664, 1, 1, 0)
    assert data[20:28] == b".rsrc\x00\x00\x00"

    n_resources = len(coff.data)
    assert coff.section_header.number_of_relocations == n_resources
    relocations = coff.section_header.pointer_to_relocations
    assert symtab == relocations + 10 * n_resources
    assert coff.section_header.size_of_raw_data == relocations - coff.section_header.pointer_to_raw_data
    # symbol table (18 bytes) then a string table holding only its own length
    assert len(data) == symtab + 18 + 4
    assert data[symtab:symtab + 8] == b".rsrc\x00\x00\x00"


def test_relocations_point_at_data_entries(ico):
    coff = rsrc.build(Architecture.X86, ico)
    data = coff.to_bytes()
    raw = coff.section_header.pointer_to_raw_data

    for relocation, entry in zip(coff.relocations, coff.data_entries):
        assert relocation.type == 0x07
        assert struct.unpack_from("<I", data, raw + relocation.virtual_address)[0] == entry.offset_to_data


def test_directory_offsets(ico):
    coff = rsrc.build(Architecture.AMD64, ico)
    data = coff.to_bytes()
    raw = coff.section_header.pointer_to_raw_data

    for entry in coff.dir.entries:
        assert entry.offset_to_data & rsrc.MASK_SUBDIRECTORY
        offset = raw + (entry.offset_to_data & ~rsrc.MASK_SUBDIRECTORY)
        # Each subdirectory header ends with its named/id entry counts.
        named, ids = struct.unpack_from("<HH", data, offset + 12)
        assert named == 0 and ids > 0

    data_entry_offsets = {e.offset_to_data for e in coff.leaves()}
    assert len(data_entry_offsets) == len(coff.data_entries)


def test_resource_data_is_aligned(ico):
    # odd-sized manifest after a 90-byte icon group
    coff = rsrc.build(Architecture.AMD64, ico, b"<assembly/>\n")

    for entry, data in zip(coff.data_entries, coff.data):
        assert entry.offset_to_data % rsrc.DATA_ALIGNMENT == 0
        assert entry.size == size_of(data.body)
        assert set(data.padding) <= {0}
    assert coff.section_header.size_of_raw_data % rsrc.DATA_ALIGNMENT == 0


def test_manifest_uses_its_own_id_space(ico):
    manifest = b"<?xml version='1.0'?><assembly/>"
    coff = rsrc.build(Architecture.AMD64, ico, manifest)

    assert [e.name_or_id for e in coff.dir.entries] == [rsrc.RT_ICON, rsrc.RT_GROUP_ICON, rsrc.RT_MANIFEST]
    assert [e.name_or_id for e in resources(coff, rsrc.RT_MANIFEST).entries] == [rsrc.MANIFEST_ID]
    assert [e.name_or_id for e in resources(coff, rsrc.RT_ICON).entries] == [1, 2, 3, 4, 5, 6]
    assert coff.data[-1].body == manifest


def test_duplicate_ids_rejected():
    coff = rsrc.Coff.for_arch(Architecture.AMD64)
    coff.add_resource(rsrc.RT_ICON, 1, b"a")
    with pytest.raises(ResourceError):
        coff.add_resource(rsrc.RT_ICON, 1, b"b")


def test_unsupported_architecture(ico):
    with pytest.raises(ResourceError):
        rsrc.build(Architecture.WASM, ico)


def test_malformed_ico():
    with pytest.raises(IconError):
        rsrc.build(Architecture.AMD64, b"\x89PNG not an icon")


def test_embed_writes_object(tmp_path, ico):
    output = rsrc.embed(tmp_path / "pkg" / "rsrc_windows_amd64.syso", Architecture.AMD64, ico)
    assert output.read_bytes() == dump(rsrc.build(Architecture.AMD64, ico))


def test_embed_unwritable(tmp_path, ico):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(OSError):
        rsrc.embed(blocker / "rsrc.syso", Architecture.AMD64, ico)
