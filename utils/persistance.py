# Simple JSON persistence helpers: whole-file reads, atomic replace writes,
# and an exclusive lock on a sibling .lock file (works across processes)

from __future__ import annotations
from contextlib import contextmanager
from pathlib import Path
import json
import os
import tempfile
from typing import Any, Iterator

if os.name == "nt":
    import msvcrt
else:
    import fcntl


def _lock_path(p: Path) -> Path:
    return p.with_suffix(p.suffix + ".lock")


def _acquire_lock(fd: int) -> None:
    if os.name == "nt":
        # msvcrt.LK_LOCK gives up after ~10s; keep retrying like flock blocks
        while True:
            try:
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
                return
            except OSError:
                continue
    fcntl.flock(fd, fcntl.LOCK_EX)


def _release_lock(fd: int) -> None:
    if os.name == "nt":
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)


@contextmanager
def file_lock(path: str | Path) -> Iterator[None]:
    """Hold an exclusive lock for ``path`` (on ``<path>.lock``). Not re-entrant."""
    lock = _lock_path(Path(path))
    lock.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        _acquire_lock(fd)
        try:
            yield
        finally:
            _release_lock(fd)
    finally:
        os.close(fd)


def read_json(path: str | Path, default: Any) -> Any:
    """Return the parsed file, or ``default`` when it is missing or blank.

    Parse errors (ValueError, RecursionError) and OS errors propagate.
    """
    p = Path(path)
    if not p.exists():
        return default
    text = p.read_text(encoding="utf-8")
    if not text.strip():
        return default
    return json.loads(text)


def write_json(path: str | Path, data: Any) -> None:
    """Write via a uniquely named sibling temp file and os.replace, so readers never see a partial file."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=p.parent, prefix=p.name + ".", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, p)
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise


def append_jsonl(path: str | Path, record: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a", encoding="utf-8") as f:
        f.write(json.dumps(record, ensure_ascii=False) + "\n")
