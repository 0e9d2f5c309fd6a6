"""
Import unread items from a Pocket JSON export.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List

from domain.entry_service import EntryService


def load_pocket_export(file_path) -> List[Dict]:
    """
    Read a Pocket export: either a JSON list of items or the API's
    {"list": {item_id: item}} mapping.
    """
    with open(Path(file_path), encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('list', data)
        if isinstance(data, dict):
            data = list(data.values())

    if not isinstance(data, list):
        raise ValueError(f"Unrecognized Pocket export format in {file_path}")
    return data


def format_pocket_item(item: Dict) -> str:
    """Entry content for a Pocket item."""
    item_id = item['item_id']
    title = item.get('resolved_title') or item.get('given_title') or ''
    excerpt = item.get('excerpt') or ''
    url = item.get('resolved_url') or item.get('given_url') or ''

    return f"{title}\n{excerpt}\n\n{url}\n\nhttps://getpocket.com/read/{item_id}\n"


def import_pocket_export(service: EntryService, items: Iterable[Dict], prefix: str = 'pocket') -> int:
    """
    Submit unread Pocket items as entries.

    Args:
        service: EntryService to submit through
        items: Pocket items (see load_pocket_export)
        prefix: Directory-like prefix for entry paths

    Returns:
        Number of items submitted
    """
    submitted = 0
    for item in items:
        # 0 = unread, 1 = archived, 2 = deleted
        if str(item.get('status')) != '0':
            continue

        path = f"{prefix}/{item['item_id']}"

        at = None
        if item.get('time_updated'):
            at = datetime.fromtimestamp(int(item['time_updated']), tz=timezone.utc).replace(tzinfo=None)

        service.submit_entry(path, content=format_pocket_item(item), at=at)
        submitted += 1

    return submitted
