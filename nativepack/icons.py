"""Icon containers: ICO (Windows) and ICNS (macOS) from a single raster.

ICO files produced here embed PNG payloads rather than DIBs, which every
Windows release since Vista accepts.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass

from PIL import Image

from .errors import IconError

ICO_SIZES = (256, 128, 64, 48, 32, 16)

ICONDIR = struct.Struct("<HHH")  # reserved, type, count
ICONDIRENTRY = struct.Struct("<BBBBHHII")  # width, height, colors, reserved, planes, bpp, size, offset
ICON_TYPE = 1


@dataclass(frozen=True)
class IconDirEntry:
    width: int
    height: int
    colors: int
    reserved: int
    planes: int
    bit_count: int
    size: int
    offset: int

    @property
    def pixel_width(self) -> int:
        return self.width or 256

    @property
    def pixel_height(self) -> int:
        return self.height or 256

    def payload(self, data: bytes) -> bytes:
        return data[self.offset:self.offset + self.size]


def decode_png(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise IconError(f"decoding icon: {exc}") from exc
    return image.convert("RGBA")


def encode_ico(image: Image.Image) -> bytes:
    source = image.convert("RGBA")
    payloads: list[tuple[int, bytes]] = []
    for size in ICO_SIZES:
        # Pillow's bicubic filter is Catmull-Rom (a = -0.5).
        scaled = source.resize((size, size), Image.Resampling.BICUBIC)
        buffer = io.BytesIO()
        try:
            scaled.save(buffer, format="PNG")
        except (OSError, ValueError) as exc:
            raise IconError(f"ico: encoding {size}x{size}: {exc}") from exc
        payloads.append((size, buffer.getvalue()))

    chunks = [ICONDIR.pack(0, ICON_TYPE, len(payloads))]
    offset = ICONDIR.size + ICONDIRENTRY.size * len(payloads)
    for size, data in payloads:
        dim = 0 if size >= 256 else size
        chunks.append(ICONDIRENTRY.pack(dim, dim, 0, 0, 1, 32, len(data), offset))
        offset += len(data)
    chunks.extend(data for _, data in payloads)
    return b"".join(chunks)


def decode_ico(data: bytes) -> list[IconDirEntry]:
    """Parse the header and directory of an ICO file (payloads are not decoded)."""
    if len(data) < ICONDIR.size:
        raise IconError("ico: truncated header")
    reserved, kind, count = ICONDIR.unpack_from(data, 0)
    if reserved != 0 or kind != ICON_TYPE:
        raise IconError(f"ico: not an icon (reserved={reserved}, type={kind})")
    if count == 0:
        raise IconError("ico: no images")
    directory_end = ICONDIR.size + ICONDIRENTRY.size * count
    if len(data) < directory_end:
        raise IconError(f"ico: truncated directory ({count} entries)")

    entries = []
    for index in range(count):
        entry = IconDirEntry(*ICONDIRENTRY.unpack_from(data, ICONDIR.size + ICONDIRENTRY.size * index))
        if entry.size == 0 or entry.offset < directory_end or entry.offset + entry.size > len(data):
            raise IconError(
                f"ico: image {index} out of bounds (offset={entry.offset}, size={entry.size})"
            )
        entries.append(entry)
    return entries


def encode_icns(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    try:
        image.convert("RGBA").save(buffer, format="ICNS")
    except (OSError, ValueError, KeyError) as exc:
        raise IconError(f"icns: converting icon: {exc}") from exc
    return buffer.getvalue()
