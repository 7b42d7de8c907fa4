"""
Snapshot persistence for the proxy store.

The snapshot is a JSON document::

    {"version": 1, "saved_at": <unix seconds>,
     "entries": {"<key>": {"value": "<base64>", "expiration": <unix seconds>}}}

Values are base64 so arbitrary bytes survive; expirations are absolute, so a
reloaded entry keeps whatever lifetime it had left when it was saved.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, List, Tuple, Union

from shared.errors import PersistenceLoadError, PersistenceSaveError
from shared.logging import get_logger

from .store import CacheEntry, DEFAULT_TTL_SECONDS, Store


SNAPSHOT_VERSION = 1
DEFAULT_SNAPSHOT_PATH = Path("./cache.json")

logger = get_logger("proxy.persistence")


def encode_snapshot(entries: List[Tuple[str, CacheEntry]], saved_at: float) -> bytes:
    """Serialize store entries into the snapshot document."""
    payload = {
        "version": SNAPSHOT_VERSION,
        "saved_at": saved_at,
        "entries": {
            key: {
                "value": base64.b64encode(entry.value).decode("ascii"),
                "expiration": entry.expiration,
            }
            for key, entry in entries
        },
    }
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode_snapshot(data: bytes, path: str = "<memory>") -> List[Tuple[str, CacheEntry]]:
    """Parse a snapshot document, raising PersistenceLoadError on any defect."""
    try:
        payload = json.loads(data)
    except (UnicodeDecodeError, ValueError) as exc:
        raise PersistenceLoadError(path, "Snapshot is not valid JSON", {"error": str(exc)}) from exc

    if not isinstance(payload, dict):
        raise PersistenceLoadError(path, "Snapshot root must be an object")
    version = payload.get("version")
    if version != SNAPSHOT_VERSION:
        raise PersistenceLoadError(path, "Unsupported snapshot version", {"version": version})
    raw_entries = payload.get("entries")
    if not isinstance(raw_entries, dict):
        raise PersistenceLoadError(path, "Snapshot entries must be an object")

    entries: List[Tuple[str, CacheEntry]] = []
    for key, raw in raw_entries.items():
        entries.append((key, _decode_entry(key, raw, path)))
    return entries


def _decode_entry(key: str, raw: Any, path: str) -> CacheEntry:
    if not isinstance(raw, dict):
        raise PersistenceLoadError(path, "Snapshot entry must be an object", {"key": key})
    value = raw.get("value")
    expiration = raw.get("expiration")
    if not isinstance(value, str):
        raise PersistenceLoadError(path, "Snapshot entry value must be a string", {"key": key})
    if isinstance(expiration, bool) or not isinstance(expiration, (int, float)):
        raise PersistenceLoadError(path, "Snapshot entry expiration must be a number", {"key": key})
    try:
        decoded = base64.b64decode(value.encode("ascii"), validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise PersistenceLoadError(path, "Snapshot entry value is not base64", {"key": key}) from exc
    return CacheEntry(value=decoded, expiration=float(expiration))


def save(store: Store, location: Union[str, Path] = DEFAULT_SNAPSHOT_PATH) -> int:
    """
    Write every entry of ``store`` to ``location`` and return how many were written.

    The document goes to a temporary file beside the target, is flushed to
    disk, then renamed over the target, so the final path only ever holds a
    complete snapshot.
    """
    path = Path(location)
    entries = store.all_entries()
    data = encode_snapshot(entries, saved_at=time.time())

    tmp_name = None
    try:
        directory = path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(directory))
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise PersistenceSaveError(str(path), str(exc)) from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Could not remove temporary snapshot", tmp_path=tmp_name)

    logger.debug("Snapshot written", path=str(path), entries=len(entries), bytes=len(data))
    return len(entries)


def load(
    location: Union[str, Path] = DEFAULT_SNAPSHOT_PATH,
    default_ttl: float = DEFAULT_TTL_SECONDS,
    *,
    clock: Callable[[], float] = time.time,
) -> Store:
    """Rebuild a store from the snapshot at ``location``. Expired entries are kept."""
    path = Path(location)
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise PersistenceLoadError(str(path), "Snapshot file not found") from exc
    except OSError as exc:
        raise PersistenceLoadError(str(path), str(exc)) from exc

    entries = decode_snapshot(data, str(path))
    return Store.from_entries(entries, default_ttl, clock=clock)
