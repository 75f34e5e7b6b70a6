"""
Object storage for raw uploads.

Keys look like `{owner}/{unix_millis}-{sanitized_name}`; the filesystem
backend maps them under a root directory and refuses to overwrite.
"""

import re
from pathlib import Path
from typing import Protocol

ANONYMOUS_PREFIX = "anonymous"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


class ObjectExistsError(FileExistsError):
    pass


class ObjectStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...


def sanitize_filename(filename: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", filename or "")
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned)
    cleaned = cleaned.strip("_.-")
    return cleaned or "upload"


def build_object_key(owner_id: str | None, filename: str, unix_millis: int) -> str:
    prefix = owner_id or ANONYMOUS_PREFIX
    return f"{prefix}/{unix_millis}-{sanitize_filename(filename)}"


class LocalObjectStore:
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Object key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # "xb" keeps upsert=false semantics.
            with path.open("xb") as buffer:
                buffer.write(data)
        except FileExistsError as exc:
            raise ObjectExistsError(f"Object already exists: {key}") from exc
        return key

    def get(self, key: str) -> bytes:
        return self._path_for(key).read_bytes()

    def delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)
