from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path, PurePosixPath
import shutil
import tempfile

from profman.adapters.errors import BuildFailure, StoreWriteError
from profman.application.archive import ArchiveFormatError, hash_path, restore_path
from profman.domain.json_types import (
    JsonDict,
    as_json_dict,
    as_json_list,
    as_str_list,
    canonical_json,
)
from profman.domain.store_path import (
    is_store_path,
    make_fixed_output_path,
    make_store_path,
    store_path_hash_part,
)
from profman.ports.store import BuildRequest, Derivation, ValidPathInfo

logger = logging.getLogger(__name__)


def _write_atomic(path: Path, text: str) -> None:
    temp = path.with_name(f".{path.name}.tmp")
    temp.write_text(text, encoding="utf-8")
    os.replace(temp, path)


def _remove_stale(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif os.path.lexists(path):
        path.unlink()


def _safe_relative(rel: str) -> PurePosixPath:
    parts = PurePosixPath(rel)
    if parts.is_absolute() or not parts.parts or ".." in parts.parts:
        raise ValueError(f"derivation file '{rel}' escapes its output")
    return parts


class LocalStore:
    def __init__(self, root: Path) -> None:
        self.root = root.absolute()
        self._store = self.root / "store"
        self._db = self.root / "db"

    @property
    def store_dir(self) -> str:
        return str(self._store)

    def _ensure_layout(self) -> None:
        try:
            self._store.mkdir(parents=True, exist_ok=True)
            self._db.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreWriteError(
                f"could not create the store under '{self.root}': {e}",
                details={"path": str(self.root)},
                cause=e,
            ) from e

    def _info_path(self, path: str) -> Path:
        return self._db / f"{store_path_hash_part(path)}.json"

    def is_store_path(self, path: str) -> bool:
        return is_store_path(self.store_dir, path)

    def is_valid_path(self, path: str) -> bool:
        return self._info_path(path).exists() and os.path.lexists(path)

    def query_path_info(self, path: str) -> ValidPathInfo | None:
        if not self.is_valid_path(path):
            return None
        raw = as_json_dict(json.loads(self._info_path(path).read_text(encoding="utf-8")))
        ca = raw.get("ca")
        return ValidPathInfo(
            path=str(raw.get("path")),
            nar_hash=str(raw.get("narHash")),
            nar_size=int(str(raw.get("narSize", 0))),
            references=frozenset(as_str_list(raw.get("references"))),
            ca=str(ca) if ca else None,
        )

    def _register(self, info: ValidPathInfo) -> None:
        record: JsonDict = {
            "path": info.path,
            "narHash": info.nar_hash,
            "narSize": info.nar_size,
            "references": as_json_list(sorted(info.references)),
            "ca": info.ca,
        }
        try:
            _write_atomic(self._info_path(info.path), json.dumps(record, sort_keys=True, indent=2))
        except OSError as e:
            raise StoreWriteError(
                f"could not register '{info.path}': {e}",
                details={"path": info.path},
                cause=e,
            ) from e

    def add_derivation(self, derivation: Derivation) -> tuple[str, str]:
        self._ensure_layout()
        body: JsonDict = {
            "name": derivation.name,
            "files": derivation.files,
            "error": derivation.error,
        }
        fingerprint = hashlib.sha256(canonical_json(body)).hexdigest()
        out_path = make_store_path(self.store_dir, "output:out", fingerprint, derivation.name)
        body["outputs"] = {"out": out_path}
        text = json.dumps(body, sort_keys=True, indent=2) + "\n"
        text_hash = hashlib.sha256(text.encode()).hexdigest()
        drv_path = make_store_path(self.store_dir, "text", text_hash, f"{derivation.name}.drv")
        if not self.is_valid_path(drv_path):
            try:
                _write_atomic(Path(drv_path), text)
            except OSError as e:
                raise StoreWriteError(
                    f"could not write derivation '{drv_path}': {e}",
                    details={"path": drv_path},
                    cause=e,
                ) from e
            self._register(
                ValidPathInfo(
                    path=drv_path,
                    nar_hash=f"sha256:{text_hash}",
                    nar_size=len(text),
                    references=frozenset(),
                )
            )
        return drv_path, out_path

    def _read_derivation(self, drv_path: str) -> JsonDict:
        if not self.is_valid_path(drv_path):
            raise BuildFailure(
                f"derivation '{drv_path}' is not in the store",
                details={"path": drv_path},
            )
        try:
            return as_json_dict(json.loads(Path(drv_path).read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as e:
            raise BuildFailure(
                f"derivation '{drv_path}' could not be read", details={"path": drv_path}, cause=e
            ) from e

    def _realize(self, out_path: str, files: JsonDict) -> None:
        staging = Path(tempfile.mkdtemp(prefix=".profman-build-", dir=self._store))
        try:
            output = staging / "out"
            output.mkdir()
            for rel in sorted(files):
                entry = as_json_dict(files[rel])
                target = output / _safe_relative(rel)
                target.parent.mkdir(parents=True, exist_ok=True)
                if "target" in entry:
                    os.symlink(str(entry["target"]), target)
                    continue
                target.write_text(str(entry.get("contents", "")), encoding="utf-8")
                target.chmod(0o555 if entry.get("executable") else 0o444)
            _remove_stale(Path(out_path))
            os.replace(output, out_path)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def build_paths(self, requests: set[BuildRequest]) -> None:
        self._ensure_layout()
        failed: list[str] = []
        for request in sorted(requests, key=str):
            derivation = self._read_derivation(request.drv_path)
            outputs = as_json_dict(derivation.get("outputs"))
            for output in request.outputs:
                out_path = outputs.get(output)
                if not isinstance(out_path, str):
                    raise BuildFailure(
                        f"derivation '{request.drv_path}' has no output '{output}'",
                        details={"path": request.drv_path},
                    )
                if self.is_valid_path(out_path):
                    continue
                error = derivation.get("error")
                if error:
                    logger.error("builder for '%s' failed: %s", request.drv_path, error)
                    failed.append(request.drv_path)
                    continue
                logger.info("building '%s'", out_path)
                try:
                    self._realize(out_path, as_json_dict(derivation.get("files")))
                    tree_hash, _ = hash_path(Path(out_path))
                except (OSError, ValueError) as e:
                    raise BuildFailure(
                        f"build of '{request.drv_path}' failed: {e}",
                        details={"path": request.drv_path},
                        cause=e,
                    ) from e
                self._register(
                    ValidPathInfo(
                        path=out_path,
                        nar_hash=str(tree_hash),
                        nar_size=tree_hash.size,
                        references=frozenset(),
                    )
                )
        if failed:
            raise BuildFailure(
                f"build of {len(failed)} derivation(s) failed: {', '.join(failed)}",
                details={"failed": failed},
            )

    def make_fixed_output_path(
        self, name: str, nar_hash: str, references: frozenset[str]
    ) -> str:
        return make_fixed_output_path(self.store_dir, name, nar_hash, references)

    def add_to_store(self, info: ValidPathInfo, nar: bytes) -> None:
        if self.is_valid_path(info.path):
            logger.debug("'%s' is already valid", info.path)
            return
        self._ensure_layout()
        digest = hashlib.sha256(nar).hexdigest()
        if info.nar_hash not in (digest, f"sha256:{digest}"):
            raise StoreWriteError(
                f"hash mismatch importing '{info.path}'",
                details={"path": info.path, "expected": info.nar_hash, "got": digest},
            )
        try:
            staging = Path(tempfile.mkdtemp(prefix=".profman-add-", dir=self._store))
        except OSError as e:
            raise StoreWriteError(
                f"could not stage '{info.path}': {e}", details={"path": info.path}, cause=e
            ) from e
        try:
            restore_path(nar, staging / "object")
            _remove_stale(Path(info.path))
            os.replace(staging / "object", info.path)
            self._register(info)
        except (OSError, ArchiveFormatError) as e:
            raise StoreWriteError(
                f"could not add '{info.path}' to the store: {e}",
                details={"path": info.path},
                cause=e,
            ) from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        logger.info("added '%s' to the store", info.path)
