"""Examine ELF binaries: notes, build IDs, load segments and base addresses."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

MAX_NOTE_SIZE = 1 << 20
NOTE_TYPE_GNU_BUILD_ID = 3

PT_LOAD = 1
PT_NOTE = 4
SHT_NOTE = 7
SHT_STRTAB = 3
PF_X = 1

_MASK64 = (1 << 64) - 1
_PAGE_SIZE = 4096
# PAGE_OFFSET for PowerPC64 kernels.
_PAGE_OFFSET_PPC64 = 0xC000000000000000
_USER_SPACE_LIMIT = 0x8000000000000000


class ElfType(IntEnum):
    """The e_type field of an ELF file header."""

    NONE = 0
    REL = 1
    EXEC = 2
    DYN = 3
    CORE = 4


@dataclass(frozen=True)
class ElfNote:
    """One entry of a note section or segment."""

    name: str
    desc: bytes
    type: int


@dataclass(frozen=True)
class ProgHeader:
    """An ELF program header."""

    type: int = 0
    flags: int = 0
    offset: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0


@dataclass(frozen=True)
class Section:
    """An ELF section header with its resolved name."""

    name: str = ""
    type: int = 0
    flags: int = 0
    addr: int = 0
    offset: int = 0
    size: int = 0
    addralign: int = 0


@dataclass
class ElfFile:
    """The parts of an ELF image that profile symbolization needs."""

    file_type: int
    byteorder: str
    progs: list[ProgHeader] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    data: bytes = field(default=b"", repr=False)


def _struct_prefix(byteorder: str) -> str:
    if byteorder == "little":
        return "<"
    if byteorder == "big":
        return ">"
    raise ValueError(f"unknown byte order {byteorder!r}")


def _padding(size: int, alignment: int) -> int:
    """Bytes needed to pad size up to an alignment boundary (<= 0 means none)."""
    return ((size + (alignment - 1)) & ~(alignment - 1)) - size


def parse_notes(data, alignment: int, byteorder: str) -> list[ElfNote]:
    """Parse the notes held in a SHT_NOTE section or PT_NOTE segment."""
    data = bytes(data)
    header_format = _struct_prefix(byteorder) + "III"
    header_size = struct.calcsize(header_format)
    end = len(data)
    pos = 0
    notes: list[ElfNote] = []

    while pos < end:
        if end - pos < header_size:
            raise ValueError("unexpected EOF reading note header")
        namesz, descsz, note_type = struct.unpack_from(header_format, data, pos)
        pos += header_size

        if namesz > MAX_NOTE_SIZE:
            raise ValueError(f"note name too long ({namesz} bytes)")
        name = ""
        if namesz > 0:
            # The name is null-terminated; its real length is found after the fact.
            terminator = data.find(b"\x00", pos)
            if terminator < 0:
                raise ValueError(f"missing note name (want {namesz} bytes)")
            name = data[pos:terminator].decode("utf-8", "surrogateescape")
            namesz = terminator + 1 - pos
            pos = terminator + 1

        pad = _padding(header_size + namesz, alignment)
        if pad > 0:
            available = end - pos
            if available < pad:
                raise ValueError(
                    f"missing {pad - available} bytes of padding after note name"
                )
            pos += pad

        if descsz > MAX_NOTE_SIZE:
            raise ValueError(f"note desc too long ({descsz} bytes)")
        if end - pos < descsz:
            raise ValueError(f"missing desc (want {descsz} bytes)")
        desc = data[pos:pos + descsz]
        pos += descsz

        notes.append(ElfNote(name=name, desc=desc, type=note_type))

        # Trailing padding may be cut short by the end of the section.
        pos = min(end, pos + max(0, _padding(descsz, alignment)))

    return notes


def _unpack(fmt: str, data: bytes, offset: int) -> tuple:
    try:
        return struct.unpack_from(fmt, data, offset)
    except struct.error as exc:
        raise ValueError(f"truncated ELF data at offset {offset}") from exc


def _c_string(data: bytes, offset: int) -> str:
    if offset >= len(data):
        return ""
    terminator = data.find(b"\x00", offset)
    if terminator < 0:
        terminator = len(data)
    return data[offset:terminator].decode("utf-8", "surrogateescape")


def read_elf(data) -> ElfFile:
    """Parse the file header, program headers and section headers of an ELF image."""
    data = bytes(data)
    if len(data) < 16 or data[:4] != b"\x7fELF":
        raise ValueError("bad magic number")
    elf_class, encoding = data[4], data[5]
    if encoding == 1:
        byteorder = "little"
    elif encoding == 2:
        byteorder = "big"
    else:
        raise ValueError(f"unknown ELF data encoding {encoding}")
    prefix = _struct_prefix(byteorder)

    if elf_class == 2:
        header_format = prefix + "HHIQQQIHHHHHH"
        prog_format = prefix + "IIQQQQQQ"
        section_format = prefix + "IIQQQQIIQQ"
    elif elf_class == 1:
        header_format = prefix + "HHIIIIIHHHHHH"
        prog_format = prefix + "IIIIIIII"
        section_format = prefix + "IIIIIIIIII"
    else:
        raise ValueError(f"unknown ELF class {elf_class}")

    (e_type, _machine, _version, _entry, phoff, shoff, _flags, _ehsize,
     phentsize, phnum, shentsize, shnum, shstrndx) = _unpack(header_format, data, 16)

    def read_prog(offset: int) -> ProgHeader:
        fields = _unpack(prog_format, data, offset)
        if elf_class == 2:
            p_type, p_flags, p_offset, vaddr, paddr, filesz, memsz, align = fields
        else:
            p_type, p_offset, vaddr, paddr, filesz, memsz, p_flags, align = fields
        return ProgHeader(p_type, p_flags, p_offset, vaddr, paddr, filesz, memsz, align)

    progs = [read_prog(off) for off in range(phoff, phoff + phnum * phentsize, phentsize)] \
        if phnum else []

    raw_sections = [
        _unpack(section_format, data, off)
        for off in range(shoff, shoff + shnum * shentsize, shentsize)
    ] if shoff and shnum else []

    strtab_offset = None
    if 0 <= shstrndx < len(raw_sections):
        strtab_offset = raw_sections[shstrndx][4]

    sections = []
    for name_off, s_type, s_flags, addr, s_offset, size, _link, _info, addralign, _entsize \
            in raw_sections:
        name = _c_string(data, strtab_offset + name_off) if strtab_offset is not None else ""
        sections.append(Section(name, s_type, s_flags, addr, s_offset, size, addralign))

    try:
        file_type = ElfType(e_type)
    except ValueError:
        file_type = e_type

    return ElfFile(file_type=file_type, byteorder=byteorder, progs=progs,
                   sections=sections, data=data)


def _find_build_id(notes: list[ElfNote]) -> bytes | None:
    build_id = None
    for note in notes:
        if note.name == "GNU" and note.type == NOTE_TYPE_GNU_BUILD_ID:
            if build_id is not None:
                raise ValueError("multiple build ids found, don't know which to use")
            build_id = note.desc
    return build_id


def get_build_id(data) -> bytes | None:
    """Return the GNU build-ID of an ELF image, or None if it has none."""
    elf = read_elf(data)
    note_regions = [
        (p.offset, p.filesz, p.align) for p in elf.progs if p.type == PT_NOTE
    ] + [
        (s.offset, s.size, s.addralign) for s in elf.sections if s.type == SHT_NOTE
    ]
    for offset, size, align in note_regions:
        notes = parse_notes(elf.data[offset:offset + size], align, elf.byteorder)
        build_id = _find_build_id(notes)
        if build_id is not None:
            return build_id
    return None


def get_base(file_type, load_segment: ProgHeader | None, stext_offset: int | None,
             start: int, limit: int, offset: int) -> int:
    """Return the base to subtract from a runtime address to get a symbol address.

    For an executable the base is usually 0; for a shared library it is where
    the mapping starts. Kernels are handled by a set of heuristics, optionally
    using the address of the _stext symbol.
    """
    if start == 0 and offset == 0 and limit in (_MASK64, 0):
        # A fake mapping spanning the whole address space: already adjusted.
        return 0

    if file_type == ElfType.EXEC:
        if load_segment is None:
            return 0
        vaddr = load_segment.vaddr
        if stext_offset is None and 0 < start < _USER_SPACE_LIMIT:
            # A regular user-mode executable.
            return (start - offset + load_segment.offset - vaddr) & _MASK64
        if vaddr == (start - offset) & _MASK64:
            return offset
        if start == 0 and limit != 0:
            # A kernel remapped to 0.
            if stext_offset is not None:
                return -stext_offset & _MASK64
            return -vaddr & _MASK64
        if start >= vaddr and limit > start and offset in (0, _PAGE_OFFSET_PPC64, start):
            if stext_offset is not None and start % _PAGE_SIZE == stext_offset % _PAGE_SIZE:
                # Tools like perf use the address of _stext as start.
                return (start - stext_offset) & _MASK64
            return (start - vaddr) & _MASK64
        if (start % _PAGE_SIZE != 0 and stext_offset is not None
                and stext_offset % _PAGE_SIZE == start % _PAGE_SIZE):
            # A kernel remapped to 0 + start % page size.
            return (start - stext_offset) & _MASK64
        raise ValueError(
            f"don't know how to handle EXEC segment: {load_segment} "
            f"start={start:#x} limit={limit:#x} offset={offset:#x}"
        )

    if file_type == ElfType.REL:
        if offset != 0:
            raise ValueError("don't know how to handle mapping.Offset")
        return start

    if file_type == ElfType.DYN:
        if load_segment is None:
            return (start - offset) & _MASK64
        return (start - offset + load_segment.offset - load_segment.vaddr) & _MASK64

    raise ValueError(f"don't know how to handle FileHeader.Type {file_type}")


def find_text_prog_header(elf_file: ElfFile) -> ProgHeader | None:
    """Return the executable LOAD segment holding the .text section, if any."""
    for section in elf_file.sections:
        if section.name != ".text":
            continue
        match = next(
            (
                prog for prog in elf_file.progs
                if prog.type == PT_LOAD and prog.flags & PF_X
                and prog.vaddr <= section.addr < prog.vaddr + prog.memsz
            ),
            None,
        )
        if match is not None:
            return match
    return None