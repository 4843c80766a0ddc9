from __future__ import annotations

"""
WAD container format (DOOM IWAD/PWAD).

File layout:
  - 4 bytes  magic: b"IWAD" (primary) or b"PWAD" (patch)
  - i32 lump_count
  - i32 directory_offset
  - lump payloads, addressed only through the directory
  - directory: lump_count entries of (i32 filepos, i32 size, char[8] name)

Notes:
  - names are ASCII, NUL padded (some tools pad with spaces), compared case-insensitively.
  - zero-size entries are markers (S_START, E1M1, ...); their filepos is meaningless.
  - names are not unique; lookups take the first match in directory order.
  - encode() re-lays the file: payloads back to back after the header, directory last.
    Shared payloads in the source are written once per lump.
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
import re

from construct import Bytes, Int32sl, Struct
from construct.core import ConstructError

from .cursor import Cursor
from .report import ValidationReport

HEADER_SIZE = 12
DIRECTORY_ENTRY_SIZE = 16
LUMP_NAME_SIZE = 8

WAD_HEADER = Struct(
    "magic" / Bytes(4),
    "lump_count" / Int32sl,
    "directory_offset" / Int32sl,
)

DIRECTORY_ENTRY = Struct(
    "filepos" / Int32sl,
    "size" / Int32sl,
    "name" / Bytes(LUMP_NAME_SIZE),
)

_PRINTABLE_NAME_RE = re.compile(r"^[\x20-\x7e]*$")


class FormatError(ValueError):
    pass


class NotFoundError(LookupError):
    pass


class WadKind(Enum):
    IWAD = "IWAD"
    PWAD = "PWAD"

    @property
    def magic(self) -> bytes:
        return self.value.encode("ascii")


@dataclass(frozen=True, slots=True)
class WadHeader:
    kind: WadKind
    lump_count: int
    directory_offset: int


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    filepos: int
    size: int
    name: str


@dataclass(frozen=True, slots=True)
class Lump:
    name: str
    data: bytes
    # Position in the decoded buffer; None for lumps added or replaced in memory.
    filepos: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_marker(self) -> bool:
        return not self.data


@dataclass(frozen=True, slots=True)
class Wad:
    kind: WadKind
    lumps: tuple[Lump, ...] = ()
    # As read from disk; only used for diagnostics in validate().
    header: WadHeader | None = None
    directory: tuple[DirectoryEntry, ...] = ()
    source_size: int | None = None

    def __len__(self) -> int:
        return len(self.lumps)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(lump.name for lump in self.lumps)


@dataclass(frozen=True, slots=True)
class WadMetadata:
    kind: WadKind
    lump_count: int
    marker_count: int
    data_size: int
    encoded_size: int
    lump_names: tuple[str, ...]


def normalize_name(name: str) -> str:
    return name.rstrip("\x00 ").upper()


def decode_name(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("latin-1").rstrip(" ")


def encode_name(name: str) -> bytes:
    try:
        raw = name.encode("ascii")
    except UnicodeEncodeError as exc:
        raise FormatError(f"lump name {name!r} is not encodable: {exc}") from exc
    if len(raw) > LUMP_NAME_SIZE:
        raise FormatError(f"lump name {name!r} is longer than {LUMP_NAME_SIZE} bytes")
    return raw.ljust(LUMP_NAME_SIZE, b"\x00")


def decode(data: bytes) -> Wad:
    data = bytes(data)
    if len(data) < HEADER_SIZE:
        raise FormatError(f"wad too small: {len(data)} bytes (need at least {HEADER_SIZE})")
    cursor = Cursor(data, error=FormatError, label="wad")
    raw_header = cursor.parse(WAD_HEADER)

    magic = bytes(raw_header.magic)
    try:
        kind = WadKind(magic.decode("latin-1"))
    except ValueError as exc:
        raise FormatError(f"bad magic: {magic!r}") from exc

    lump_count = int(raw_header.lump_count)
    directory_offset = int(raw_header.directory_offset)
    if lump_count < 0:
        raise FormatError(f"negative lump count: {lump_count}")
    directory_end = directory_offset + lump_count * DIRECTORY_ENTRY_SIZE
    if directory_offset < 0 or directory_end > len(data):
        raise FormatError(
            f"directory at offset {directory_offset} with {lump_count} entries "
            f"extends beyond file ({len(data)} bytes)"
        )

    cursor.seek(directory_offset)
    directory: list[DirectoryEntry] = []
    lumps: list[Lump] = []
    for index in range(lump_count):
        raw_entry = cursor.parse(DIRECTORY_ENTRY)
        entry = DirectoryEntry(
            filepos=int(raw_entry.filepos),
            size=int(raw_entry.size),
            name=decode_name(bytes(raw_entry.name)),
        )
        if entry.size < 0:
            raise FormatError(f"lump {index} ({entry.name!r}) has negative size {entry.size}")
        if entry.size == 0:
            payload = b""
        else:
            end = entry.filepos + entry.size
            if entry.filepos < 0 or end > len(data):
                raise FormatError(
                    f"lump {index} ({entry.name!r}) at offset {entry.filepos} size {entry.size} "
                    f"extends beyond file ({len(data)} bytes)"
                )
            payload = data[entry.filepos : end]
        directory.append(entry)
        lumps.append(Lump(name=entry.name, data=payload, filepos=entry.filepos))

    return Wad(
        kind=kind,
        lumps=tuple(lumps),
        header=WadHeader(kind=kind, lump_count=lump_count, directory_offset=directory_offset),
        directory=tuple(directory),
        source_size=len(data),
    )


def encode(wad: Wad) -> bytes:
    out = bytearray(HEADER_SIZE)
    entries: list[bytes] = []
    for lump in wad.lumps:
        try:
            entries.append(
                DIRECTORY_ENTRY.build(
                    {
                        "filepos": len(out),
                        "size": len(lump.data),
                        "name": encode_name(lump.name),
                    }
                )
            )
        except ConstructError as exc:
            raise FormatError(f"failed to build directory entry {lump.name!r}: {exc}") from exc
        out += lump.data

    directory_offset = len(out)
    for entry in entries:
        out += entry
    try:
        out[:HEADER_SIZE] = WAD_HEADER.build(
            {
                "magic": wad.kind.magic,
                "lump_count": len(wad.lumps),
                "directory_offset": directory_offset,
            }
        )
    except ConstructError as exc:
        raise FormatError(f"failed to build header: {exc}") from exc
    return bytes(out)


def load(path: str | Path) -> Wad:
    return decode(Path(path).read_bytes())


def save(wad: Wad, path: str | Path) -> None:
    Path(path).write_bytes(encode(wad))


def lump_index(wad: Wad, name: str) -> int | None:
    key = normalize_name(name)
    for index, lump in enumerate(wad.lumps):
        if normalize_name(lump.name) == key:
            return index
    return None


def find_lump(wad: Wad, name: str) -> Lump | None:
    index = lump_index(wad, name)
    if index is None:
        return None
    return wad.lumps[index]


def find_lumps(wad: Wad, pattern: str | re.Pattern[str]) -> tuple[Lump, ...]:
    regex = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
    return tuple(lump for lump in wad.lumps if regex.search(lump.name))


def replace_lump(wad: Wad, name: str, data: bytes) -> Wad:
    """Return a copy of ``wad`` with the first lump named ``name`` holding ``data``.

    The decoded directory is kept, so ``validate`` reports the size change as a
    warning until the archive is re-encoded.
    """
    index = lump_index(wad, name)
    if index is None:
        raise NotFoundError(f"lump {name!r} not found")
    return replace_lump_at(wad, index, data)


def replace_lump_at(wad: Wad, index: int, data: bytes) -> Wad:
    if not 0 <= index < len(wad.lumps):
        raise NotFoundError(f"lump index {index} out of range (0..{len(wad.lumps) - 1})")
    lumps = list(wad.lumps)
    lumps[index] = replace(lumps[index], data=bytes(data), filepos=None)
    return replace(wad, lumps=tuple(lumps))


def add_lump(wad: Wad, name: str, data: bytes = b"") -> Wad:
    encode_name(name)
    lump = Lump(name=name, data=bytes(data))
    return replace(wad, lumps=wad.lumps + (lump,), header=None, directory=())


def remove_lump(wad: Wad, name: str) -> Wad:
    key = normalize_name(name)
    lumps = tuple(lump for lump in wad.lumps if normalize_name(lump.name) != key)
    if len(lumps) == len(wad.lumps):
        raise NotFoundError(f"lump {name!r} not found")
    return replace(wad, lumps=lumps, header=None, directory=())


def _namespace_markers(prefix: str) -> tuple[set[str], set[str]]:
    prefix = prefix.upper()
    doubled = prefix * 2 if len(prefix) == 1 else prefix
    starts = {f"{prefix}_START", f"{doubled}_START", f"{prefix}START"}
    ends = {f"{prefix}_END", f"{doubled}_END", f"{prefix}END"}
    return starts, ends


def namespace_indices(wad: Wad, prefix: str) -> tuple[int, ...]:
    starts, ends = _namespace_markers(prefix)
    inside = False
    found: list[int] = []
    for index, lump in enumerate(wad.lumps):
        key = normalize_name(lump.name)
        if lump.is_marker and key in starts:
            inside = True
            continue
        if lump.is_marker and key in ends:
            inside = False
            continue
        if inside and not lump.is_marker:
            found.append(index)
    return tuple(found)


def namespace_lumps(wad: Wad, prefix: str) -> tuple[Lump, ...]:
    """Lumps between ``<prefix>_START`` and ``<prefix>_END`` markers (``S`` sprites, ``F`` flats, ``P`` patches)."""
    return tuple(wad.lumps[index] for index in namespace_indices(wad, prefix))


def validate(wad: Wad) -> ValidationReport:
    errors: list[str] = []
    warnings: list[str] = []

    header = wad.header
    if header is not None:
        if header.lump_count < 0:
            errors.append(f"invalid lump count: {header.lump_count}")
        if header.lump_count != len(wad.lumps):
            errors.append(f"lump count mismatch: header={header.lump_count}, lumps={len(wad.lumps)}")
        if header.lump_count != len(wad.directory):
            errors.append(f"directory size mismatch: header={header.lump_count}, directory={len(wad.directory)}")
        if wad.source_size is not None:
            directory_end = header.directory_offset + len(wad.directory) * DIRECTORY_ENTRY_SIZE
            if header.directory_offset < 0 or directory_end > wad.source_size:
                errors.append(
                    f"directory at offset {header.directory_offset} extends beyond file ({wad.source_size} bytes)"
                )

    for index, entry in enumerate(wad.directory):
        if entry.size < 0:
            errors.append(f"entry {index} ({entry.name!r}): negative size {entry.size}")
            continue
        if entry.size == 0:
            continue
        if entry.filepos < 0:
            errors.append(f"entry {index} ({entry.name!r}): negative offset {entry.filepos}")
        elif wad.source_size is not None and entry.filepos + entry.size > wad.source_size:
            errors.append(
                f"entry {index} ({entry.name!r}): offset {entry.filepos} size {entry.size} "
                f"extends beyond file ({wad.source_size} bytes)"
            )

    for index, (entry, lump) in enumerate(zip(wad.directory, wad.lumps)):
        if entry.name != lump.name:
            errors.append(f"name mismatch at index {index}: directory={entry.name!r}, lump={lump.name!r}")
        if entry.size != lump.size:
            warnings.append(f"size mismatch for {lump.name!r}: directory={entry.size}, lump={lump.size}")

    seen: set[str] = set()
    for lump in wad.lumps:
        if len(lump.name) > LUMP_NAME_SIZE:
            errors.append(f"lump name too long: {lump.name!r} ({len(lump.name)} chars)")
        if not _PRINTABLE_NAME_RE.match(lump.name):
            errors.append(f"lump name contains non-printable or non-ASCII characters: {lump.name!r}")
        key = normalize_name(lump.name)
        if key in seen and not lump.is_marker:
            warnings.append(f"duplicate lump name: {lump.name!r}")
        seen.add(key)

    return ValidationReport(errors=tuple(errors), warnings=tuple(warnings))


def metadata(wad: Wad) -> WadMetadata:
    data_size = sum(lump.size for lump in wad.lumps)
    return WadMetadata(
        kind=wad.kind,
        lump_count=len(wad.lumps),
        marker_count=sum(1 for lump in wad.lumps if lump.is_marker),
        data_size=data_size,
        encoded_size=HEADER_SIZE + data_size + len(wad.lumps) * DIRECTORY_ENTRY_SIZE,
        lump_names=wad.names,
    )


def format_size(size: float) -> str:
    if size < 1024:
        return f"{int(size)} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    return f"{size / (1024 * 1024 * 1024):.2f} GB"


def format_structure(wad: Wad, lumps: Iterable[Lump] | None = None) -> str:
    meta = metadata(wad)
    lines = [
        f"Type: {meta.kind.value}",
        f"Lumps: {meta.lump_count} ({meta.marker_count} markers)",
        f"Data size: {format_size(meta.data_size)}",
        f"Encoded size: {format_size(meta.encoded_size)}",
    ]
    if wad.header is not None:
        lines.append(f"Directory offset: {wad.header.directory_offset} (0x{wad.header.directory_offset:X})")
    lines.append("")
    lines.append("  IDX      OFFSET        SIZE  NAME")
    for index, lump in enumerate(wad.lumps if lumps is None else lumps):
        offset = "-" if lump.filepos is None else str(lump.filepos)
        lines.append(f"{index:5d} {offset:>11} {format_size(lump.size):>11}  {lump.name}")
    return "\n".join(lines)
