"""
End-to-end tests for scripts/store_cli.py.

Each test drives ``main(argv)`` against its own file database and reads
the JSON the command prints.
"""

import importlib.util
import json
from decimal import Decimal
from pathlib import Path

import pytest

from store_kernel.db.engine import reset_engine

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "store_cli.py"


def _load_cli():
    spec = importlib.util.spec_from_file_location("store_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


store_cli = _load_cli()


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    """Run the CLI against a fresh database; returns (exit_code, payload, stderr)."""
    monkeypatch.delenv(store_cli.DB_URL_ENV, raising=False)
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    def _run(*args, as_json=True):
        argv = ["--db-url", url] + (["--json"] if as_json else []) + list(args)
        code = store_cli.main(argv)
        out, err = capsys.readouterr()
        payload = json.loads(out) if as_json and code == 0 and out.strip() else out
        return code, payload, err

    code, _, _ = _run("init-db", as_json=False)
    assert code == 0
    yield _run
    reset_engine()


def _add_item(cli, serial="TW-001", stock="10", location="localStore"):
    args = [
        "add-item", "--name", "Torque wrench", "--category", "TTG",
        "--serial", serial, "--location", location, "--unit", "Pieces",
        "--cost", "12.50", "--stock", stock, "--performed-by", "clerk-1",
    ]
    if location == "localStore":
        args += ["--section", "Section A"]
    code, item, err = cli(*args)
    assert code == 0, err
    return item


def _create_request(cli, item_id, quantity=3):
    code, request, err = cli(
        "create-request", "--requester-id", "user-7", "--requester-name", "Cpl Jones",
        "--section", "Section A", "--item", f"{item_id}:{quantity}:repair",
    )
    assert code == 0, err
    return request


class TestItems:
    def test_add_and_show_stock(self, cli):
        item = _add_item(cli)
        assert item["stock_level"] == 10
        assert item["cost"] == "12.50"

        code, shown, _ = cli("stock", item["id"])
        assert code == 0
        assert shown["serial_number"] == "TW-001"
        assert shown["stock_status"] == "in_stock"

    def test_movement_and_history(self, cli):
        item = _add_item(cli)
        code, moved, _ = cli(
            "movement", item["id"], "--type", "damaged", "--quantity", "2",
            "--reference", "DMG-1", "--performed-by", "clerk-1",
        )
        assert code == 0
        assert moved["stock_level"] == 8
        assert moved["condition_status"] == "unserviceable"

        code, history, _ = cli("transactions", item["id"])
        assert [t["transaction_type"] for t in history] == ["received", "damaged"]

    def test_duplicate_serial(self, cli):
        _add_item(cli)
        args = [
            "add-item", "--name", "Other", "--category", "TTG", "--serial", "TW-001",
            "--location", "wsgStore", "--unit", "Pieces", "--cost", "1", "--performed-by", "c",
        ]
        code, _, err = cli(*args)
        assert code == 1
        assert "ERROR [DUPLICATE_SERIAL_NUMBER]" in err

    def test_deactivate(self, cli):
        item = _add_item(cli)
        assert cli("deactivate-item", item["id"])[0] == 0

        code, _, err = cli("stock", item["id"])
        assert code == 1
        assert "ITEM_NOT_FOUND" in err


class TestRequests:
    def test_request_lifecycle(self, cli):
        item = _add_item(cli)
        request = _create_request(cli, item["id"])
        assert request["status"] == "pending"
        assert Decimal(request["total_estimated_cost"]) == Decimal("37.50")

        code, shown, _ = cli("show-request", request["id"], "--role", "localStoreManager")
        assert code == 0
        assert shown["available_actions"] == [
            "approve", "reject", "forwardToWSG", "forwardToCOD", "cancel",
        ]

        code, approved, err = cli(
            "action", request["id"], "approve", "--by", "mgr-1", "--role", "localStoreManager",
        )
        assert code == 0, err
        assert approved["status"] == "approved"
        assert approved["request_number"].startswith("REQ-")

        assert cli("stock", item["id"])[1]["stock_level"] == 7

    def test_unauthorized_action(self, cli):
        item = _add_item(cli)
        request = _create_request(cli, item["id"])

        code, _, err = cli("action", request["id"], "approve", "--by", "u-7", "--role", "requester")
        assert code == 1
        assert "ERROR [UNAUTHORIZED_ACTION]" in err

    def test_insufficient_stock(self, cli):
        item = _add_item(cli, stock="1")
        request = _create_request(cli, item["id"], quantity=2)

        code, _, err = cli(
            "action", request["id"], "approve", "--by", "mgr-1", "--role", "localStoreManager",
        )
        assert code == 1
        assert "INSUFFICIENT_STOCK" in err

    def test_list_with_filters(self, cli):
        item = _add_item(cli)
        first = _create_request(cli, item["id"])
        second = _create_request(cli, item["id"], quantity=1)
        cli("action", second["id"], "forwardToWSG", "--by", "mgr-1", "--role", "localStoreManager")

        code, listed, _ = cli("list-requests")
        assert code == 0
        assert [r["id"] for r in listed] == [first["id"], second["id"]]

        code, listed, _ = cli("list-requests", "--location", "wsgStore")
        assert [r["id"] for r in listed] == [second["id"]]

    def test_bad_item_spec(self, cli):
        code, _, err = cli(
            "create-request", "--requester-id", "u", "--requester-name", "n",
            "--section", "Section A", "--item", "no-quantity",
        )
        assert code == 1
        assert "VALIDATION_ERROR" in err

    def test_text_output(self, cli):
        item = _add_item(cli)
        _create_request(cli, item["id"])
        code, out, _ = cli("list-requests", as_json=False)
        assert code == 0
        assert "(unnumbered)" in out
        assert "Torque wrench x3" in out
