"""
Tests for the command line entry point.
"""
import json

import pytest

from inventory_hub.db import run_in_transaction
from inventory_hub.main import build_parser, main
from inventory_hub.services.catalog_service import CatalogService


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'inventory.db'}"
    assert main(['--db-url', url, 'init-db']) == 0
    return url


@pytest.fixture
def component_id(db_url):
    return run_in_transaction(
        lambda session: CatalogService(session).create_component({'sku': 'RS-BOX', 'name': 'RS box'}).id
    )


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert 'usage' in capsys.readouterr().out


def test_parser_rejects_unknown_adjustment_type():
    with pytest.raises(SystemExit):
        build_parser().parse_args(['adjust', '1', 'transfer', '5'])


def test_adjust_and_stock_report(db_url, component_id, capsys):
    assert main(['--db-url', db_url, 'adjust', str(component_id), 'add', '5']) == 0
    assert '0 -> 5 (+5)' in capsys.readouterr().out

    assert main(['--db-url', db_url, 'stock-report', '--json']) == 0
    rows = json.loads(capsys.readouterr().out)
    assert rows[0]['sku'] == 'RS-BOX'
    assert rows[0]['on_hand'] == 5


def test_stock_report_table(db_url, component_id, capsys):
    run_in_transaction(lambda session: CatalogService(session).create_component({'sku': 'RS-LID', 'name': 'RS lid'}))
    assert main(['--db-url', db_url, 'adjust', str(component_id), 'add', '5']) == 0
    capsys.readouterr()

    assert main(['--db-url', db_url, 'stock-report']) == 0
    lines = capsys.readouterr().out.splitlines()

    assert lines[0].split()[:3] == ['SKU', 'On', 'hand']
    box = next(line for line in lines if line.strip().startswith('RS-BOX'))
    assert box.split()[1:3] == ['5', '0']
    assert 'nan' not in '\n'.join(lines).lower()
    assert lines[-1] == '2 components'


def test_count_without_notes_fails(db_url, component_id, capsys):
    assert main(['--db-url', db_url, 'adjust', str(component_id), 'count', '3']) == 2
    assert 'Notes are required' in capsys.readouterr().err


def test_low_stock_csv(db_url, component_id, tmp_path, capsys):
    path = tmp_path / 'low.csv'

    assert main(['--db-url', db_url, 'low-stock', '--csv', str(path)]) == 0
    assert 'Wrote 1 rows' in capsys.readouterr().out
    assert path.read_text().startswith('status,component_id,sku')


def test_missing_purchase_order(db_url, capsys):
    assert main(['--db-url', db_url, 'po-status', '42', 'sent']) == 2
    assert 'not found' in capsys.readouterr().err
