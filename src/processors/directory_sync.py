"""
Mirror a directory of entry files into the database.

Each regular, non-hidden file under the root is an entry; its path relative
to the root is the entry path. Files that disappeared are soft-deleted.
Files whose entry was already deleted are not resurrected: they are either
reported as conflicts or removed from disk.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from db.database import compute_content_hash
from domain.entry_service import EntryService


@dataclass
class SyncReport:
    """Outcome of one directory sync."""
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)   # entries whose file is gone
    removed: List[str] = field(default_factory=list)   # files removed because the entry was deleted
    conflicts: List[str] = field(default_factory=list)  # files whose entry is already deleted

    def summary(self) -> Dict[str, int]:
        return {
            'added': len(self.added),
            'updated': len(self.updated),
            'unchanged': len(self.unchanged),
            'deleted': len(self.deleted),
            'removed': len(self.removed),
            'conflicts': len(self.conflicts)
        }


def iter_entry_files(root: Path) -> Iterator[Tuple[str, Path]]:
    """Yield (relative POSIX path, absolute path), skipping hidden files and directories."""
    for file_path in sorted(root.rglob('*')):
        relative = file_path.relative_to(root)
        if any(part.startswith('.') for part in relative.parts):
            continue
        if not file_path.is_file():
            continue
        yield relative.as_posix(), file_path


def _modified_at(file_path: Path) -> datetime:
    """File mtime as naive UTC (the database stores naive UTC datetimes)."""
    mtime = file_path.stat().st_mtime
    return datetime.fromtimestamp(mtime, tz=timezone.utc).replace(tzinfo=None)


def sync_directory(service: EntryService, root, delete_already_deleted: bool = False) -> SyncReport:
    """
    Sync the entries database with the files under root.

    Args:
        service: EntryService to submit through
        root: Directory holding the entry files
        delete_already_deleted: Remove files whose entry was deleted earlier
            instead of reporting them as conflicts

    Returns:
        SyncReport
    """
    root = Path(root).expanduser()
    if not root.is_dir():
        raise FileNotFoundError(f"Entries directory not found: {root}")

    report = SyncReport()

    session = service.db.get_session()
    try:
        known = {e.path: e for e in service.db.list_entries(session, include_deleted=True)}
        current = {}
        for path, entry in known.items():
            if entry.is_deleted:
                continue
            record = service.db.current_content(session, path)
            if record is not None:
                current[path] = (record.content_hash, record.at)
    finally:
        session.close()

    seen = set()

    for path, file_path in iter_entry_files(root):
        seen.add(path)
        entry = known.get(path)

        if entry is not None and entry.is_deleted:
            if delete_already_deleted:
                file_path.unlink()
                report.removed.append(path)
            else:
                report.conflicts.append(path)
            continue

        content = file_path.read_bytes().decode('utf-8', errors='replace')

        current_hash, current_at = current.get(path, (None, None))
        if entry is not None and current_hash == compute_content_hash(content):
            report.unchanged.append(path)
            continue

        # An mtime older than the current record (cp -p, rsync -a) must still become current
        at = _modified_at(file_path)
        if current_at is not None and current_at > at:
            at = current_at

        service.submit_entry(path, content=content, at=at)

        if entry is None:
            report.added.append(path)
        else:
            report.updated.append(path)

    now = datetime.utcnow()
    for path, entry in sorted(known.items()):
        if entry.is_deleted or path in seen:
            continue
        service.mark_deleted(path, at=now)
        report.deleted.append(path)

    return report
