import json

import pytest

from processors.pocket_import import load_pocket_export, format_pocket_item, import_pocket_export

ITEMS = [
    {
        'item_id': '101',
        'status': '0',
        'resolved_title': 'Unread article',
        'excerpt': 'Short summary',
        'resolved_url': 'https://example.com/unread',
        'time_updated': '1704110400',
    },
    {
        'item_id': '102',
        'status': '1',
        'resolved_title': 'Archived article',
        'resolved_url': 'https://example.com/archived',
    },
    {
        'item_id': '103',
        'status': 0,
        'given_title': 'Only a given title',
        'given_url': 'https://example.com/given',
    },
]


def test_load_list_export(tmp_path):
    export = tmp_path / 'output.json'
    export.write_text(json.dumps(ITEMS), encoding='utf-8')

    assert load_pocket_export(export) == ITEMS


def test_load_api_mapping_export(tmp_path):
    export = tmp_path / 'output.json'
    export.write_text(json.dumps({'status': 1, 'list': {item['item_id']: item for item in ITEMS}}), encoding='utf-8')

    assert [item['item_id'] for item in load_pocket_export(export)] == ['101', '102', '103']


def test_load_rejects_unknown_format(tmp_path):
    export = tmp_path / 'output.json'
    export.write_text('"just a string"', encoding='utf-8')

    with pytest.raises(ValueError):
        load_pocket_export(export)


def test_format_pocket_item():
    assert format_pocket_item(ITEMS[0]) == (
        "Unread article\nShort summary\n\nhttps://example.com/unread\n\n"
        "https://getpocket.com/read/101\n"
    )


def test_import_only_unread_items(service):
    count = import_pocket_export(service, ITEMS)

    assert count == 2
    # 101 carries its Pocket timestamp, 103 is stamped at import time
    assert [r.path for r in service.list_ordered()] == ['pocket/101', 'pocket/103']

    entry = service.get_entry('pocket/101')
    assert entry.added_at.year == 2024
    assert service.current_content('pocket/103').content.startswith('Only a given title\n')


def test_import_is_repeatable(service):
    import_pocket_export(service, ITEMS, prefix='later')
    import_pocket_export(service, ITEMS, prefix='later')

    assert len(service.list_ordered()) == 2
    assert len(service.content_history('later/101')) == 1
