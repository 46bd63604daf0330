from __future__ import annotations

import hashlib
from pathlib import PurePosixPath
import re
from typing import Iterable

BASE32_CHARS = "0123456789abcdfghijklmnpqrsvwxyz"
HASH_BYTES = 20
HASH_CHARS = 32
NAME_PATTERN = re.compile(r"^[A-Za-z0-9+\-_?=][A-Za-z0-9+\-._?=]*$")
BASENAME_PATTERN = re.compile(rf"^[{BASE32_CHARS}]{{{HASH_CHARS}}}-(.+)$")


def to_base32(data: bytes) -> str:
    length = (len(data) * 8 - 1) // 5 + 1
    chars: list[str] = []
    for n in range(length - 1, -1, -1):
        bit = n * 5
        i, j = divmod(bit, 8)
        c = data[i] >> j
        if i + 1 < len(data):
            c |= data[i + 1] << (8 - j)
        chars.append(BASE32_CHARS[c & 0x1F])
    return "".join(chars)


def compress_hash(digest: bytes, size: int = HASH_BYTES) -> bytes:
    folded = bytearray(size)
    for i, byte in enumerate(digest):
        folded[i % size] ^= byte
    return bytes(folded)


def make_store_path(store_dir: str, kind: str, fingerprint: str, name: str) -> str:
    if not NAME_PATTERN.match(name):
        raise ValueError(f"invalid store path name '{name}'")
    descriptor = f"{kind}:sha256:{fingerprint}:{store_dir}:{name}"
    digest = hashlib.sha256(descriptor.encode()).digest()
    return f"{store_dir}/{to_base32(compress_hash(digest))}-{name}"


def make_fixed_output_path(
    store_dir: str, name: str, nar_hash: str, references: Iterable[str]
) -> str:
    kind = ":".join(["source", *sorted(references)])
    return make_store_path(store_dir, kind, nar_hash, name)


def is_store_path(store_dir: str, candidate: str) -> bool:
    path = PurePosixPath(candidate)
    if str(path) != candidate or str(path.parent) != store_dir:
        return False
    match = BASENAME_PATTERN.match(path.name)
    return match is not None and NAME_PATTERN.match(match.group(1)) is not None


def store_path_hash_part(path: str) -> str:
    return PurePosixPath(path).name[:HASH_CHARS]


def store_path_name(path: str) -> str:
    return PurePosixPath(path).name[HASH_CHARS + 1:]
