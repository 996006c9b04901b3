#!/usr/bin/env python3
"""
Operator commands for the registration database.

Usage:
    python scripts/registry_admin.py init-db
    python scripts/registry_admin.py show-config [--config PATH]
    python scripts/registry_admin.py set-seed application 500 --actor UUID
    python scripts/registry_admin.py history HP-HS-2025-SML-000005
    python scripts/registry_admin.py sync-documents APPLICATION_ID
    python scripts/registry_admin.py purge-drafts --operator UUID [--older-than-days N] [--execute]

The database URL comes from --database-url or REGISTRY_DATABASE_URL.
Every command runs in one transaction; nothing is written on error.
"""

import argparse
import os
import sys
from uuid import UUID

DEFAULT_DB_URL = "sqlite:///registry.db"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Registration database maintenance.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("REGISTRY_DATABASE_URL", DEFAULT_DB_URL),
        help="SQLAlchemy database URL (default: $REGISTRY_DATABASE_URL or sqlite:///registry.db).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration YAML (default: registry_config/sets/default.yaml).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")
    sub.add_parser("show-config", help="Validate and print the active configuration.")

    seed = sub.add_parser("set-seed", help="Set the serial seed for a numbering scope.")
    seed.add_argument("scope", choices=("application", "certificate"))
    seed.add_argument("seed", type=int)
    seed.add_argument("--actor", type=UUID, required=True)

    history = sub.add_parser("history", help="Print the action log of an application.")
    history.add_argument("application", help="Application id or application number.")

    sync = sub.add_parser("sync-documents", help="Copy inline documents into document rows.")
    sync.add_argument("application_id", type=UUID)

    purge = sub.add_parser("purge-drafts", help="Delete drafts nobody has touched for a while.")
    purge.add_argument("--operator", type=UUID, required=True)
    purge.add_argument("--older-than-days", type=int, default=None)
    purge.add_argument(
        "--execute",
        action="store_true",
        help="Actually delete; without it only the candidates are listed.",
    )
    return parser.parse_args(argv)


def _resolve_application(registry, ref: str):
    try:
        info = registry.applications.get(UUID(ref))
    except ValueError:
        info = registry.applications.get_by_number(ref)
    if info is None:
        print(f"  ERROR: application not found: {ref}", file=sys.stderr)
    return info


def _cmd_show_config(config) -> int:
    print(f"config_id: {config.config_id}")
    print(f"version:   {config.version}")
    print(f"checksum:  {config.checksum}")
    print(f"workflow:  max_reverts={config.workflow.max_reverts} "
          f"resubmit_target={config.workflow.correction_resubmit_target}")
    print(f"documents: min_photos={config.documents.min_photos}")
    return 0


def _cmd_set_seed(registry, args) -> int:
    from registry_kernel.services.sequence_allocator import APPLICATION_SCOPE, CERTIFICATE_SCOPE

    scope = APPLICATION_SCOPE if args.scope == "application" else CERTIFICATE_SCOPE
    registry.settings.set_serial_seed(scope, args.seed, args.actor)
    print(f"{scope.setting_key} = {args.seed} (next candidate {registry.allocator.peek_next(scope)})")
    return 0


def _cmd_history(registry, args) -> int:
    info = _resolve_application(registry, args.application)
    if info is None:
        return 1
    print(f"{info.application_number}  {info.kind.value}  {info.status.value}")
    for record in reversed(registry.action_log.history(info.id)):
        prev = record.previous_status.value if record.previous_status else "-"
        line = (
            f"  #{record.entry_no:<3} {record.created_at.isoformat()}  "
            f"{record.action_kind.value:<28} {prev} -> {record.new_status.value}"
        )
        if record.feedback:
            line += f"  {record.feedback}"
        print(line)
    return 0


def _cmd_sync_documents(registry, args) -> int:
    count = registry.documents.sync_documents_from_inline(args.application_id)
    print(f"documents copied: {count}")
    return 0


def _cmd_purge_drafts(registry, args) -> int:
    report = registry.drafts.purge_abandoned_drafts(
        args.operator,
        older_than_days=args.older_than_days,
        dry_run=not args.execute,
    )
    label = "would purge" if report.dry_run else "purged"
    for info in report.candidates:
        print(f"  {info.application_number}  last updated {info.updated_at}")
    print(f"{label}: {len(report.candidates)} draft(s) older than {report.older_than_days} days")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from registry_config import get_active_config
    from registry_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from registry_kernel.db.immutability import register_immutability_listeners
    from registry_kernel.exceptions import RegistryKernelError
    from registry_services.wiring import build_registry

    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, RegistryKernelError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.command == "show-config":
        return _cmd_show_config(config)

    init_engine_from_url(args.database_url, echo=False)
    register_immutability_listeners()

    if args.command == "init-db":
        create_tables()
        print("tables created")
        return 0

    commands = {
        "set-seed": _cmd_set_seed,
        "history": _cmd_history,
        "sync-documents": _cmd_sync_documents,
        "purge-drafts": _cmd_purge_drafts,
    }
    try:
        with session_scope() as session:
            registry = build_registry(session, config)
            return commands[args.command](registry, args)
    except (RegistryKernelError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
