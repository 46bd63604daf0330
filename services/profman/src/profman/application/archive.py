"""Deterministic serialization of filesystem trees.

The encoding follows the Nix archive layout: a stream of length-prefixed,
8-byte padded strings describing regular files (contents and executable bit),
symlinks (target, verbatim) and directories (entries sorted by name). Nothing
else about a file is recorded, so two trees with the same names, contents and
link targets always serialize to the same bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import os
from pathlib import Path
import stat
import struct

ARCHIVE_MAGIC = "nix-archive-1"


@dataclass(frozen=True)
class TreeHash:
    algorithm: str
    digest: str
    size: int

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.digest}"


class ArchiveFormatError(ValueError):
    pass


def _pack(data: bytes) -> bytes:
    padding = (8 - len(data) % 8) % 8
    return struct.pack("<Q", len(data)) + data + b"\0" * padding


def _pack_str(value: str) -> bytes:
    return _pack(value.encode())


def _dump_node(path: Path, out: list[bytes]) -> None:
    st = path.lstat()
    out.append(_pack_str("("))
    if stat.S_ISLNK(st.st_mode):
        out.extend([_pack_str("type"), _pack_str("symlink"), _pack_str("target")])
        out.append(_pack(os.fsencode(os.readlink(path))))
    elif stat.S_ISREG(st.st_mode):
        out.extend([_pack_str("type"), _pack_str("regular")])
        if st.st_mode & stat.S_IXUSR:
            out.extend([_pack_str("executable"), _pack_str("")])
        out.append(_pack_str("contents"))
        out.append(_pack(path.read_bytes()))
    elif stat.S_ISDIR(st.st_mode):
        out.extend([_pack_str("type"), _pack_str("directory")])
        for name in sorted(os.listdir(path), key=os.fsencode):
            out.extend([_pack_str("entry"), _pack_str("("), _pack_str("name")])
            out.append(_pack(os.fsencode(name)))
            out.append(_pack_str("node"))
            _dump_node(path / name, out)
            out.append(_pack_str(")"))
    else:
        raise ArchiveFormatError(f"unsupported file type at '{path}'")
    out.append(_pack_str(")"))


def dump_path(path: Path) -> bytes:
    out = [_pack_str(ARCHIVE_MAGIC)]
    _dump_node(path, out)
    return b"".join(out)


def hash_path(path: Path) -> tuple[TreeHash, bytes]:
    nar = dump_path(path)
    return TreeHash("sha256", hashlib.sha256(nar).hexdigest(), len(nar)), nar


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def read(self) -> bytes:
        if self.pos + 8 > len(self.data):
            raise ArchiveFormatError("truncated archive")
        (length,) = struct.unpack_from("<Q", self.data, self.pos)
        start = self.pos + 8
        end = start + length
        if end > len(self.data):
            raise ArchiveFormatError("truncated archive")
        self.pos = end + (8 - length % 8) % 8
        return self.data[start:end]

    def read_str(self) -> str:
        return self.read().decode()

    def expect(self, token: str) -> None:
        got = self.read_str()
        if got != token:
            raise ArchiveFormatError(f"expected '{token}', got '{got}'")


def _restore_node(reader: _Reader, path: Path) -> None:
    reader.expect("(")
    reader.expect("type")
    kind = reader.read_str()
    if kind == "symlink":
        reader.expect("target")
        os.symlink(os.fsdecode(reader.read()), path)
    elif kind == "regular":
        tag = reader.read_str()
        executable = tag == "executable"
        if executable:
            reader.expect("")
            reader.expect("contents")
        elif tag != "contents":
            raise ArchiveFormatError(f"unexpected tag '{tag}'")
        path.write_bytes(reader.read())
        path.chmod(0o555 if executable else 0o444)
    elif kind == "directory":
        path.mkdir()
        while True:
            tag = reader.read_str()
            if tag == ")":
                return
            if tag != "entry":
                raise ArchiveFormatError(f"unexpected tag '{tag}'")
            reader.expect("(")
            reader.expect("name")
            name = os.fsdecode(reader.read())
            if name in ("", ".", "..") or "/" in name:
                raise ArchiveFormatError(f"invalid entry name '{name}'")
            reader.expect("node")
            _restore_node(reader, path / name)
            reader.expect(")")
    else:
        raise ArchiveFormatError(f"unknown node type '{kind}'")
    reader.expect(")")


def restore_path(nar: bytes, path: Path) -> None:
    reader = _Reader(nar)
    reader.expect(ARCHIVE_MAGIC)
    _restore_node(reader, path)
    if reader.pos != len(nar):
        raise ArchiveFormatError("trailing data after archive")
