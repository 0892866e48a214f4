import struct

import pytest

from profkit.elfexec import (
    ElfNote,
    ElfType,
    ProgHeader,
    find_text_prog_header,
    get_base,
    get_build_id,
    parse_notes,
    read_elf,
)

FH_EXEC = ElfType.EXEC
FH_REL = ElfType.REL
FH_DYN = ElfType.DYN
LS_OFFSET = ProgHeader(vaddr=0x400000, offset=0x200000)
KERNEL_HEADER = ProgHeader(vaddr=0xFFFFFFFF81000000)
KERNEL_ASLR_HEADER = ProgHeader(vaddr=0xFFFFFFFF80200000, offset=0x1000)
PPC64_KERNEL_HEADER = ProgHeader(vaddr=0xC000000000000000)
MAX64 = (1 << 64) - 1


@pytest.mark.parametrize(
    "label, fh, load_segment, stext, start, limit, offset, want, wanterr",
    [
        ("exec", FH_EXEC, None, None, 0x400000, 0, 0, 0, False),
        ("exec offset", FH_EXEC, LS_OFFSET, None, 0x400000, 0x800000, 0, 0x200000, False),
        ("exec offset 2", FH_EXEC, LS_OFFSET, None, 0x200000, 0x600000, 0, 0, False),
        ("exec nomap", FH_EXEC, None, None, 0, 0, 0, 0, False),
        ("exec kernel", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81000198,
         0xFFFFFFFF82000198, 0xFFFFFFFF83000198, 0, 0x1000000, False),
        ("exec kernel", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF810002B8,
         0xFFFFFFFF81000000, 0xFFFFFFFFA0000000, 0x0, 0x0, False),
        ("exec kernel ASLR", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF810002B8,
         0xFFFFFFFF81000000, 0xFFFFFFFFA0000000, 0xFFFFFFFF81000000, 0x0, False),
        ("exec kernel ASLR 2", FH_EXEC, KERNEL_ASLR_HEADER, None,
         0xFFFFFFFF83E00000, 0xFFFFFFFFFC3FFFFF, 0x3C00000, 0x3C00000, False),
        ("exec PPC64 kernel", FH_EXEC, PPC64_KERNEL_HEADER, 0xC000000000000000,
         0xC000000000000000, 0xD00000001A730000, 0x0, 0x0, False),
        ("exec chromeos kernel", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81000198,
         0, 0x10197, 0, 0x7EFFFE68, False),
        ("exec chromeos kernel 2", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81000198,
         0, 0x10198, 0, 0x7EFFFE68, False),
        ("exec chromeos kernel 3", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81000198,
         0x198, 0x100000, 0, 0x7F000000, False),
        ("exec chromeos kernel 4", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81200198,
         0x198, 0x100000, 0, 0x7EE00000, False),
        ("exec chromeos kernel unremapped", FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF810001C8,
         0xFFFFFFFF834001C8, 0xFFFFFFFFC0000000, 0xFFFFFFFF834001C8, 0x2400000, False),
        ("dyn", FH_DYN, None, None, 0x200000, 0x300000, 0, 0x200000, False),
        ("dyn map", FH_DYN, LS_OFFSET, None, 0x0, 0x300000, 0, 0xFFFFFFFFFFE00000, False),
        ("dyn nomap", FH_DYN, None, None, 0x0, 0x0, 0, 0, False),
        ("dyn map+offset", FH_DYN, LS_OFFSET, None, 0x900000, 0xA00000, 0x200000, 0x500000, False),
        ("rel", FH_REL, None, None, 0x2000000, 0x3000000, 0, 0x2000000, False),
        ("rel nomap", FH_REL, None, None, 0x0, MAX64, 0, 0, False),
        ("rel offset", FH_REL, None, None, 0x100000, 0x200000, 0x1, 0, True),
    ],
)
def test_get_base(label, fh, load_segment, stext, start, limit, offset, want, wanterr):
    if wanterr:
        with pytest.raises(ValueError):
            get_base(fh, load_segment, stext, start, limit, offset)
    else:
        assert get_base(fh, load_segment, stext, start, limit, offset) == want, label


def test_get_base_unknown_type():
    with pytest.raises(ValueError, match="FileHeader.Type"):
        get_base(ElfType.CORE, None, None, 0x1000, 0x2000, 0)


def test_get_base_exec_unhandled_kernel_segment():
    with pytest.raises(ValueError, match="EXEC segment"):
        get_base(FH_EXEC, KERNEL_HEADER, 0xFFFFFFFF81000198, 0x1000, 0x2000, 0x10)


def _note(name: bytes, desc: bytes, note_type: int, order: str = "<", align: int = 4) -> bytes:
    namesz = len(name) + 1 if name else 0
    header = struct.pack(order + "III", namesz, len(desc), note_type)
    body = header + (name + b"\x00" if name else b"")
    body += b"\x00" * (-len(body) % align)
    body += desc + b"\x00" * (-len(desc) % align)
    return body


def test_parse_notes_single_little_endian():
    data = _note(b"GNU", b"\x01\x02\x03", 3)
    assert parse_notes(data, 4, "little") == [ElfNote("GNU", b"\x01\x02\x03", 3)]


def test_parse_notes_big_endian_multiple():
    data = _note(b"GNU", b"\xaa" * 8, 3, ">") + _note(b"Go", b"xyz", 4, ">")
    assert parse_notes(data, 4, "big") == [
        ElfNote("GNU", b"\xaa" * 8, 3),
        ElfNote("Go", b"xyz", 4),
    ]


def test_parse_notes_empty():
    assert parse_notes(b"", 4, "little") == []


def test_parse_notes_without_name():
    data = struct.pack("<III", 0, 4, 7) + b"abcd"
    assert parse_notes(data, 4, "little") == [ElfNote("", b"abcd", 7)]


def test_parse_notes_missing_trailing_padding_is_allowed():
    data = struct.pack("<III", 4, 3, 3) + b"GNU\x00" + b"\x01\x02\x03"
    assert parse_notes(data, 4, "little") == [ElfNote("GNU", b"\x01\x02\x03", 3)]


def test_parse_notes_truncated_header():
    with pytest.raises(ValueError):
        parse_notes(b"\x00" * 5, 4, "little")


def test_parse_notes_name_too_long():
    data = struct.pack("<III", (1 << 20) + 1, 0, 3)
    with pytest.raises(ValueError, match="note name too long"):
        parse_notes(data, 4, "little")


def test_parse_notes_desc_too_long():
    data = struct.pack("<III", 4, (1 << 20) + 1, 3) + b"GNU\x00"
    with pytest.raises(ValueError, match="note desc too long"):
        parse_notes(data, 4, "little")


def test_parse_notes_missing_name_terminator():
    data = struct.pack("<III", 4, 0, 3) + b"GNU"
    with pytest.raises(ValueError, match="missing note name"):
        parse_notes(data, 4, "little")


def test_parse_notes_missing_name_padding():
    data = struct.pack("<III", 3, 0, 3) + b"GN\x00"
    with pytest.raises(ValueError, match="padding after note name"):
        parse_notes(data, 4, "little")


def test_parse_notes_missing_desc():
    data = struct.pack("<III", 4, 8, 3) + b"GNU\x00" + b"\x01\x02"
    with pytest.raises(ValueError, match="missing desc"):
        parse_notes(data, 4, "little")


def test_parse_notes_bad_byteorder():
    with pytest.raises(ValueError):
        parse_notes(_note(b"GNU", b"x", 3), 4, "middle")


def make_elf(file_type=ElfType.DYN, payload=b"", progs=(), sections=()):
    """Build a 64-bit little-endian ELF image; payload starts at offset 64."""
    names = b"\x00"
    name_offsets = []
    for name, *_ in sections:
        name_offsets.append(len(names))
        names += name.encode() + b"\x00"
    shstrtab_name = len(names)
    names += b".shstrtab\x00"

    phoff = 64 + len(payload)
    shstr_off = phoff + 56 * len(progs)
    shoff = shstr_off + len(names)

    body = payload + b"".join(struct.pack("<IIQQQQQQ", *p) for p in progs) + names
    section_headers = [struct.pack("<IIQQQQIIQQ", *([0] * 10))]
    section_headers += [
        struct.pack("<IIQQQQIIQQ", name_off, typ, 0, addr, off, size, 0, 0, align, 0)
        for name_off, (_name, typ, addr, off, size, align) in zip(name_offsets, sections)
    ]
    section_headers.append(
        struct.pack("<IIQQQQIIQQ", shstrtab_name, 3, 0, 0, shstr_off, len(names), 0, 0, 1, 0)
    )
    header = b"\x7fELF\x02\x01\x01" + bytes(9) + struct.pack(
        "<HHIQQQIHHHHHH", int(file_type), 62, 1, 0, phoff if progs else 0, shoff, 0,
        64, 56, len(progs), 64, len(section_headers), len(section_headers) - 1,
    )
    return header + body + b"".join(section_headers)


BUILD_ID = bytes(range(20))


def test_get_build_id_from_segment():
    payload = _note(b"GNU", BUILD_ID, 3)
    elf = make_elf(progs=[(4, 4, 64, 0, 0, len(payload), len(payload), 4)], payload=payload)
    assert get_build_id(elf) == BUILD_ID


def test_get_build_id_from_section():
    payload = _note(b"GNU", BUILD_ID, 3)
    elf = make_elf(payload=payload,
                   sections=[(".note.gnu.build-id", 7, 0, 64, len(payload), 4)])
    assert get_build_id(elf) == BUILD_ID


def test_get_build_id_skips_other_notes():
    payload = _note(b"Go", b"gobuildid", 4)
    elf = make_elf(progs=[(4, 4, 64, 0, 0, len(payload), len(payload), 4)], payload=payload)
    assert get_build_id(elf) is None


def test_get_build_id_none_without_notes():
    assert get_build_id(make_elf()) is None


def test_get_build_id_multiple():
    payload = _note(b"GNU", BUILD_ID, 3) + _note(b"GNU", b"\x01" * 20, 3)
    elf = make_elf(progs=[(4, 4, 64, 0, 0, len(payload), len(payload), 4)], payload=payload)
    with pytest.raises(ValueError, match="multiple build ids"):
        get_build_id(elf)


def test_get_build_id_bad_magic():
    with pytest.raises(ValueError, match="bad magic"):
        get_build_id(b"not an elf file at all")


def test_read_elf_64_little_endian():
    elf = read_elf(make_elf(
        file_type=ElfType.EXEC,
        progs=[(1, 5, 0, 0x400000, 0x400000, 0x1000, 0x2000, 0x1000)],
        sections=[(".text", 1, 0x401000, 0, 0x100, 16)],
    ))
    assert elf.file_type == ElfType.EXEC
    assert elf.byteorder == "little"
    assert [s.name for s in elf.sections] == ["", ".text", ".shstrtab"]
    assert elf.progs == [ProgHeader(1, 5, 0, 0x400000, 0x400000, 0x1000, 0x2000, 0x1000)]


def test_read_elf_32_big_endian():
    header = b"\x7fELF\x01\x02\x01" + bytes(9) + struct.pack(
        ">HHIIIIIHHHHHH", 3, 8, 1, 0, 0, 0, 0, 52, 32, 0, 40, 0, 0
    )
    elf = read_elf(header)
    assert elf.file_type == ElfType.DYN
    assert elf.byteorder == "big"
    assert elf.progs == [] and elf.sections == []


def test_read_elf_truncated_header():
    with pytest.raises(ValueError):
        read_elf(b"\x7fELF\x02\x01\x01" + bytes(20))


def test_find_text_prog_header():
    text_load = (1, 5, 0, 0x400000, 0x400000, 0x2000, 0x2000, 0x1000)
    elf = read_elf(make_elf(
        file_type=ElfType.EXEC,
        progs=[(1, 6, 0, 0x600000, 0x600000, 0x100, 0x100, 0x1000), text_load],
        sections=[(".text", 1, 0x401000, 0, 0x100, 16)],
    ))
    assert find_text_prog_header(elf) == ProgHeader(*text_load)


def test_find_text_prog_header_requires_executable_segment():
    elf = read_elf(make_elf(
        file_type=ElfType.EXEC,
        progs=[(1, 4, 0, 0x400000, 0x400000, 0x2000, 0x2000, 0x1000)],
        sections=[(".text", 1, 0x401000, 0, 0x100, 16)],
    ))
    assert find_text_prog_header(elf) is None


def test_find_text_prog_header_without_text_section():
    elf = read_elf(make_elf(
        file_type=ElfType.EXEC,
        progs=[(1, 5, 0, 0x400000, 0x400000, 0x2000, 0x2000, 0x1000)],
    ))
    assert find_text_prog_header(elf) is None