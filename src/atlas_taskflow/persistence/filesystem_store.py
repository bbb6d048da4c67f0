"""Artifact Store em sistema de arquivos (joblib, v1).

Layout determinístico (relativo a `root`):

    <root>/<task>/<sha256 da identidade>/
        meta.json                  → ArtifactMeta (ponteiro para a revisão vigente)
        value-<revision>.joblib    → valor serializado da revisão vigente

Protocolo de escrita atômica:
1. `joblib.dump` para arquivo temporário no mesmo diretório + fsync
2. rename para `value-<revision>.joblib`
3. `meta.json` reescrito via arquivo temporário + `os.replace` (troca de ponteiro)
4. remoção de revisões antigas

Uma escrita interrompida em qualquer ponto deixa visível a revisão anterior
(ou nenhuma): o artefato só existe quando `meta.json` aponta para ele.

Decisões (v1):
- Formato: joblib
- Integridade: `meta.json` registra o SHA-256 do arquivo de valor; `load`
  verifica e levanta StoreIOError em caso de divergência
- Escritas e leituras concorrentes na mesma identidade são serializadas por
  processo (lock por identidade): `load` nunca observa uma revisão já removida

Limites explícitos:
- Não faz locking entre processos
- Não sincroniza com storage remoto
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import joblib

from atlas_taskflow.core.exceptions import StoreIOError
from atlas_taskflow.core.task.task import TaskIdentity

from .artifact_store import ArtifactMeta, artifact_not_found


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_META_FILE = "meta.json"


def _file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def _fsync_file(path: Path) -> None:
    with path.open("rb+") as fh:
        fh.flush()
        os.fsync(fh.fileno())


def _fsync_dir(path: Path) -> None:
    if not hasattr(os, "O_DIRECTORY"):  # pragma: no cover (Windows)
        return
    fd = os.open(str(path), os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _unlink_quiet(path: Path) -> None:
    path.unlink(missing_ok=True)


class FileSystemArtifactStore:
    """Store canônica (v1) em disco, com escrita atômica por identidade."""

    format = "joblib"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def artifact_dir(self, identity: TaskIdentity) -> Path:
        """Diretório determinístico do artefato de uma identidade."""
        task_dir = _UNSAFE_CHARS.sub("_", identity.name) or "_"
        return self.root / task_dir / identity.digest

    def meta_path(self, identity: TaskIdentity) -> Path:
        return self.artifact_dir(identity) / _META_FILE

    def value_path(self, identity: TaskIdentity, revision: str) -> Path:
        return self.artifact_dir(identity) / f"value-{revision}.joblib"

    def _lock_for(self, identity: TaskIdentity) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(identity.key, threading.Lock())

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    def _read_meta(self, path: Path, identity: Optional[TaskIdentity] = None) -> Optional[ArtifactMeta]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreIOError(
                f"Cannot read artifact metadata at {path}",
                details={"identity": identity.key if identity else None, "path": str(path)},
            ) from exc
        try:
            return ArtifactMeta.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreIOError(
                f"Corrupted artifact metadata at {path}",
                details={"identity": identity.key if identity else None, "path": str(path)},
                hint="Invalide o artefato para que a task seja reexecutada.",
            ) from exc

    def _write_meta(self, directory: Path, meta: ArtifactMeta) -> None:
        tmp = directory / f".meta-{meta.revision}.json.tmp"
        try:
            tmp.write_text(
                json.dumps(meta.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
            _fsync_file(tmp)
            os.replace(tmp, directory / _META_FILE)
        finally:
            _unlink_quiet(tmp)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------
    def describe(self, identity: TaskIdentity) -> Optional[ArtifactMeta]:
        return self._read_meta(self.meta_path(identity), identity)

    def exists(self, identity: TaskIdentity) -> bool:
        with self._lock_for(identity):
            meta = self.describe(identity)
            return meta is not None and self.value_path(identity, meta.revision).exists()

    def load(self, identity: TaskIdentity) -> Any:
        # save() troca o ponteiro e remove revisões antigas sob o mesmo lock
        with self._lock_for(identity):
            meta = self.describe(identity)
            if meta is None:
                raise artifact_not_found(identity)

            path = self.value_path(identity, meta.revision)
            details = {"identity": identity.key, "revision": meta.revision, "path": str(path)}
            if not path.exists():
                raise StoreIOError(
                    f"Artifact {identity.key} points to a missing value file",
                    details=details,
                    hint="Invalide o artefato para que a task seja reexecutada.",
                )
            if meta.checksum is not None and _file_sha256(path) != meta.checksum:
                raise StoreIOError(
                    f"Checksum mismatch for artifact {identity.key}",
                    details=dict(details, expected=meta.checksum),
                    hint="O arquivo foi alterado ou corrompido; invalide e reexecute a task.",
                )
            try:
                return joblib.load(path)
            except Exception as exc:
                raise StoreIOError(
                    f"Cannot deserialize artifact {identity.key}: {type(exc).__name__}: {exc}",
                    details=details,
                ) from exc

    def save(
        self,
        identity: TaskIdentity,
        value: Any,
        *,
        upstream: Optional[Mapping[str, str]] = None,
    ) -> ArtifactMeta:
        directory = self.artifact_dir(identity)
        meta = ArtifactMeta.create(identity, upstream=upstream, format=self.format)
        final = self.value_path(identity, meta.revision)
        tmp = directory / f".value-{meta.revision}.joblib.tmp"

        with self._lock_for(identity):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                joblib.dump(value, tmp)
                _fsync_file(tmp)
                meta = replace(meta, checksum=_file_sha256(tmp))
                os.replace(tmp, final)
                self._write_meta(directory, meta)
                _fsync_dir(directory)
            except Exception as exc:
                _unlink_quiet(tmp)
                current = self._read_meta(directory / _META_FILE, identity)
                if current is None or current.revision != meta.revision:
                    _unlink_quiet(final)
                raise StoreIOError(
                    f"Failed to save artifact {identity.key}: {type(exc).__name__}: {exc}",
                    details={"identity": identity.key, "path": str(directory)},
                    hint="A revisão anterior (se existir) permanece válida; corrija a causa e reexecute.",
                ) from exc

            for old in directory.glob("value-*.joblib"):
                if old.name != final.name:
                    _unlink_quiet(old)
        return meta

    def invalidate(self, identity: TaskIdentity) -> bool:
        directory = self.artifact_dir(identity)
        with self._lock_for(identity):
            meta_file = directory / _META_FILE
            existed = meta_file.exists()
            _unlink_quiet(meta_file)
            if directory.exists():
                for leftover in directory.glob("value-*.joblib"):
                    _unlink_quiet(leftover)
                if not any(directory.iterdir()):
                    directory.rmdir()
        return existed

    def keys(self) -> List[TaskIdentity]:
        if not self.root.exists():
            return []
        identities: List[TaskIdentity] = []
        for meta_file in sorted(self.root.glob(f"*/*/{_META_FILE}")):
            meta = self._read_meta(meta_file)
            if meta is not None:
                identities.append(meta.identity)
        return sorted(identities, key=lambda i: i.key)


__all__ = ["FileSystemArtifactStore"]
