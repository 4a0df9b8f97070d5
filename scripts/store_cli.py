#!/usr/bin/env python3
"""
Workshop store command line -- stock, requests and workflow actions.

Usage:
    python3 scripts/store_cli.py [--db-url URL] [--json] <command> [options]

Examples:
    # Create the tables
    python3 scripts/store_cli.py init-db

    # Register a local-store item with opening stock
    python3 scripts/store_cli.py add-item --name "Torque wrench" --category TTG \\
        --serial TW-001 --location localStore --section "Section A" \\
        --unit Pieces --cost 45.50 --stock 10 --performed-by clerk-1

    # Raise a request for 3 of them
    python3 scripts/store_cli.py create-request --requester-id u-7 \\
        --requester-name "Cpl Jones" --section "Section A" --item <item-id>:3:repair

    # Approve it as the local store manager
    python3 scripts/store_cli.py action <request-id> approve --by mgr-1 \\
        --role localStoreManager

    # Active requests, JSON
    python3 scripts/store_cli.py --json list-requests --status pending

Exit codes:
    0 success, 1 error, 2 optimistic conflict after all retries.

The database URL comes from --db-url, else STORE_DATABASE_URL, else the
active configuration's database.url.
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from store_config import get_active_config  # noqa: E402
from store_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from store_kernel.domain.dtos import (  # noqa: E402
    ItemInput,
    LineItemInput,
    RequestFilter,
    RequestInput,
)
from store_kernel.domain.values import (  # noqa: E402
    ConditionStatus,
    ItemCategory,
    Location,
    Priority,
    RequestStatus,
    TransactionType,
    UnitOfMeasure,
    WorkflowAction,
)
from store_kernel.exceptions import ConflictError, StoreKernelError, ValidationError  # noqa: E402
from store_kernel.logging_config import configure_logging  # noqa: E402
from store_services import StoreOrchestrator, run_with_conflict_retry  # noqa: E402

DB_URL_ENV = "STORE_DATABASE_URL"

W = 80


def _choices(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


# =============================================================================
# Output helpers
# =============================================================================


def _json_default(obj):
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Not JSON serializable: {type(obj).__name__}")


def emit_json(payload) -> None:
    if is_dataclass(payload):
        payload = asdict(payload)
    elif isinstance(payload, (list, tuple)):
        payload = [asdict(p) if is_dataclass(p) else p for p in payload]
    print(json.dumps(payload, default=_json_default, indent=2))


def print_item(item) -> None:
    print(f"{item.name}  [{item.serial_number}]  id={item.id}")
    print(f"  {item.category} / {item.condition_status} @ {item.location}"
          + (f" ({item.section})" if item.section else ""))
    print(f"  stock {item.stock_level} {item.unit_of_measure} "
          f"(min {item.min_stock_level}, {item.stock_status.value})  cost {item.cost}")


def print_request(request, actions: tuple[str, ...] | None = None) -> None:
    number = request.request_number or "(unnumbered)"
    print(f"{number}  id={request.id}")
    print(f"  {request.status} / {request.priority} @ {request.current_location}  "
          f"by {request.requester_name} ({request.requester_section})")
    for line in request.line_items:
        stock = "" if line.current_stock is None else f"  [stock {line.current_stock}]"
        print(f"  {line.line_no}. {line.item_name} x{line.quantity} "
              f"= {line.estimated_cost}{stock}")
    print(f"  total {request.total_estimated_cost}")
    if request.notes:
        for note in request.notes.splitlines():
            print(f"  | {note}")
    if actions is not None:
        print(f"  available: {', '.join(actions) if actions else '-'}")


# =============================================================================
# Commands
# =============================================================================


def _parse_line(spec: str) -> LineItemInput:
    """ITEM_ID:QUANTITY[:PURPOSE]"""
    parts = spec.split(":", 2)
    if len(parts) < 2:
        raise ValidationError(f"--item expects ITEM_ID:QUANTITY[:PURPOSE], got {spec!r}", field="item")
    try:
        quantity = int(parts[1])
    except ValueError:
        raise ValidationError(f"Quantity must be an integer in {spec!r}", field="quantity") from None
    return LineItemInput(
        item_id=parts[0],
        quantity=quantity,
        purpose=parts[2] if len(parts) == 3 else None,
    )


def cmd_init_db(args, ctx) -> int:
    create_tables()
    print("Tables created.")
    return 0


def cmd_add_item(args, ctx) -> int:
    data = ItemInput(
        name=args.name,
        category=args.category,
        serial_number=args.serial,
        location=args.location,
        unit_of_measure=args.unit,
        cost=Decimal(args.cost),
        stock_level=args.stock,
        min_stock_level=args.min_stock,
        condition_status=args.condition,
        section=args.section,
        description=args.description,
        supplier=args.supplier,
        lead_time_days=args.lead_time,
    )
    item = ctx.mutate(lambda svc: svc.ledger.register_item(data, args.performed_by))
    emit_json(item) if args.json else print_item(item)
    return 0


def cmd_stock(args, ctx) -> int:
    item = ctx.read(lambda svc: svc.ledger.get_item(args.item_id))
    emit_json(item) if args.json else print_item(item)
    return 0


def cmd_movement(args, ctx) -> int:
    item = ctx.mutate(
        lambda svc: svc.ledger.record_movement(
            args.item_id, args.type, args.quantity, args.reference,
            args.performed_by, args.notes,
        )
    )
    emit_json(item) if args.json else print_item(item)
    return 0


def cmd_deactivate_item(args, ctx) -> int:
    item = ctx.mutate(lambda svc: svc.ledger.deactivate_item(args.item_id))
    emit_json(item) if args.json else print(f"Deactivated {item.name} [{item.serial_number}]")
    return 0


def cmd_transactions(args, ctx) -> int:
    rows = ctx.read(lambda svc: svc.ledger.get_transactions(args.item_id))
    if args.json:
        emit_json(rows)
        return 0
    for tx in rows:
        print(f"{tx.position:>4}  {tx.recorded_at:%Y-%m-%d %H:%M}  {tx.transaction_type:<10} "
              f"{tx.quantity:>6}  {tx.reference}  by {tx.performed_by}")
    return 0


def cmd_create_request(args, ctx) -> int:
    lines = tuple(_parse_line(spec) for spec in args.item)
    data = RequestInput(
        requester_id=args.requester_id,
        requester_name=args.requester_name,
        requester_section=args.section,
        requester_rank=args.rank,
        line_items=lines,
        priority=args.priority,
        notes=args.notes,
        source_location=args.source_location,
    )
    request = ctx.mutate(lambda svc: svc.requests.create_request(data))
    emit_json(request) if args.json else print_request(request)
    return 0


def cmd_action(args, ctx) -> int:
    request = ctx.mutate(
        lambda svc: svc.engine.perform_action(
            args.request_id,
            args.action,
            args.by,
            notes=args.notes,
            allocated_from=args.allocated_from,
            actor_role=args.role,
        )
    )
    emit_json(request) if args.json else print_request(request)
    return 0


def cmd_list_requests(args, ctx) -> int:
    request_filter = RequestFilter(
        status=args.status,
        section=args.section,
        priority=args.priority,
        location=args.location,
    )
    requests = ctx.read(lambda svc: svc.selector.list_requests(request_filter))
    if args.json:
        emit_json(requests)
        return 0
    if not requests:
        print("No requests.")
    for request in requests:
        print_request(request)
        print("-" * W)
    return 0


def cmd_show_request(args, ctx) -> int:
    def _show(svc):
        view = svc.selector.get_request(args.request_id)
        return view, svc.engine.available_actions(args.request_id, args.role)

    request, actions = ctx.read(_show)
    if args.json:
        payload = asdict(request)
        payload["available_actions"] = list(actions)
        emit_json(payload)
    else:
        print_request(request, actions)
    return 0


# =============================================================================
# Runtime context
# =============================================================================


class CliContext:
    """Runs reads in a session scope and writes under the conflict retry."""

    def __init__(self, config):
        self.config = config

    def _services(self, session) -> StoreOrchestrator:
        return StoreOrchestrator(session, config=self.config)

    def read(self, fn):
        with session_scope() as session:
            return fn(self._services(session))

    def mutate(self, fn):
        return run_with_conflict_retry(
            get_session_factory(),
            lambda session: fn(self._services(session)),
            max_attempts=self.config.concurrency.max_conflict_retries,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Workshop store inventory and request workflow.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-url", type=str, default=None,
                        help=f"Database URL (default: ${DB_URL_ENV} or config database.url)")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Directory holding configuration sets")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Structured logs to stderr at INFO level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create all tables")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("add-item", help="Register an item (inbound stock)")
    p.add_argument("--name", required=True)
    p.add_argument("--category", required=True, choices=_choices(ItemCategory))
    p.add_argument("--serial", required=True)
    p.add_argument("--location", required=True, choices=_choices(Location))
    p.add_argument("--section")
    p.add_argument("--unit", required=True, choices=_choices(UnitOfMeasure))
    p.add_argument("--cost", required=True)
    p.add_argument("--stock", type=int, default=0)
    p.add_argument("--min-stock", type=int, default=0)
    p.add_argument("--condition", default=ConditionStatus.SERVICEABLE.value,
                   choices=_choices(ConditionStatus))
    p.add_argument("--description")
    p.add_argument("--supplier")
    p.add_argument("--lead-time", type=int, default=30)
    p.add_argument("--performed-by", required=True)
    p.set_defaults(func=cmd_add_item)

    p = sub.add_parser("stock", help="Show an item and its stock level")
    p.add_argument("item_id")
    p.set_defaults(func=cmd_stock)

    p = sub.add_parser("movement", help="Record a direct stock movement")
    p.add_argument("item_id")
    p.add_argument("--type", required=True, choices=_choices(TransactionType))
    p.add_argument("--quantity", type=int, required=True)
    p.add_argument("--reference", required=True)
    p.add_argument("--performed-by", required=True)
    p.add_argument("--notes")
    p.set_defaults(func=cmd_movement)

    p = sub.add_parser("deactivate-item", help="Soft-delete an item")
    p.add_argument("item_id")
    p.set_defaults(func=cmd_deactivate_item)

    p = sub.add_parser("transactions", help="Transaction history of an item")
    p.add_argument("item_id")
    p.set_defaults(func=cmd_transactions)

    p = sub.add_parser("create-request", help="Raise a request for items")
    p.add_argument("--requester-id", required=True)
    p.add_argument("--requester-name", required=True)
    p.add_argument("--section", required=True)
    p.add_argument("--rank")
    p.add_argument("--item", action="append", required=True,
                   help="ITEM_ID:QUANTITY[:PURPOSE], repeatable")
    p.add_argument("--priority", default=Priority.MEDIUM.value, choices=_choices(Priority))
    p.add_argument("--source-location", default=Location.LOCAL_STORE.value,
                   choices=_choices(Location))
    p.add_argument("--notes")
    p.set_defaults(func=cmd_create_request)

    p = sub.add_parser("action", help="Perform a workflow action on a request")
    p.add_argument("request_id")
    p.add_argument("action", choices=_choices(WorkflowAction))
    p.add_argument("--by", required=True, help="Performer identity")
    p.add_argument("--role", help="Declared actor role")
    p.add_argument("--notes")
    p.add_argument("--allocated-from", choices=_choices(Location))
    p.set_defaults(func=cmd_action)

    p = sub.add_parser("list-requests", help="List active requests")
    p.add_argument("--status", choices=_choices(RequestStatus))
    p.add_argument("--section")
    p.add_argument("--priority", choices=_choices(Priority))
    p.add_argument("--location", choices=_choices(Location))
    p.set_defaults(func=cmd_list_requests)

    p = sub.add_parser("show-request", help="Show one request and its available actions")
    p.add_argument("request_id")
    p.add_argument("--role", help="Role to compute available actions for")
    p.set_defaults(func=cmd_show_request)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config_dir)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR [CONFIG]: {exc}", file=sys.stderr)
        return 1

    db_url = args.db_url or os.environ.get(DB_URL_ENV) or config.database.url

    try:
        init_engine_from_url(db_url)
    except Exception as exc:
        print(f"ERROR [DATABASE]: Cannot connect to database: {exc}", file=sys.stderr)
        return 1

    try:
        return args.func(args, CliContext(config))
    except ConflictError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2
    except StoreKernelError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
