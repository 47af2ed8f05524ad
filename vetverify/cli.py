#!/usr/bin/env python3
"""
vetverify - admin command line.

Examples:
  vetverify queue --search sharma --role veterinarian
  vetverify decide acct-1 acct-2 --decision rejected --reason "Invalid License Number"
  vetverify export --output approved.csv
  vetverify reconcile
  vetverify remind
  vetverify serve --port 5001
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich import box

from .app import build_services, configure_logging, create_app
from .config import ConfigurationError, load_settings
from .errors import VerificationError
from .review_queue import QueueFilter

console = Console()


def show_queue(svc, args) -> None:
    page = svc.queue.list(
        QueueFilter(search_text=args.search or "", role=args.role),
        page=args.page,
        page_size=args.page_size,
    )
    if not page.total_count:
        console.print("[dim]No professionals awaiting verification.[/dim]")
        return

    table = Table(title=f"Review Queue (page {page.page}/{page.total_pages})", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Email", style="dim")
    table.add_column("License")
    table.add_column("Docs", justify="right")
    table.add_column("Submitted", style="dim")

    for entry in page.items:
        table.add_row(
            entry.account_id,
            entry.name,
            entry.account.role.value,
            entry.account.email,
            entry.profile.license_number,
            str(len(entry.documents)),
            entry.profile.submitted_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    console.print(f"[dim]{page.total_count} pending in total[/dim]")


def decide(svc, args) -> int:
    details = {"reason": args.reason, "comments": args.comments}
    result = svc.engine.batch_record_decision(args.account_ids, args.decision, details, admin_id=args.admin_id)

    table = Table(title=f"Decision: {args.decision}", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Result")
    for account_id in sorted(result.succeeded):
        table.add_row(account_id, "[green]ok[/green]")
    for account_id, error in sorted(result.failed.items()):
        table.add_row(account_id, f"[red]{error}[/red]")
    console.print(table)
    return 0 if result.ok else 1


def export(svc, args) -> None:
    if args.output:
        count = svc.queue.write_approved_export(Path(args.output))
        console.print(f"[green]Exported {count} approved professional(s) to {args.output}[/green]")
    else:
        sys.stdout.write(svc.queue.export_approved())


def reconcile(svc, args) -> None:
    report = svc.engine.reconcile()
    if not report.repaired:
        console.print(f"[green]Checked {report.checked} account(s); all consistent.[/green]")
        return

    table = Table(title="Repaired Accounts", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Was", style="red")
    table.add_column("Now", style="green")
    for account_id, (was, now) in sorted(report.repaired.items()):
        table.add_row(account_id, was, now)
    console.print(table)


def remind(svc, args) -> None:
    sent = svc.engine.send_document_reminders()
    console.print(f"Sent {sent} document reminder(s).")


def show_history(svc, args) -> None:
    decisions = svc.engine.history(args.account_id)
    if not decisions:
        console.print("[dim]No decisions recorded yet.[/dim]")
        return

    table = Table(title=f"History: {args.account_id}", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Status", style="cyan")
    table.add_column("Reason")
    table.add_column("Comments", style="dim")
    table.add_column("Admin")
    table.add_column("When", style="dim")
    for d in decisions:
        table.add_row(str(d.sequence), d.status.value, d.reason or "", d.comments or "",
                      d.admin_id or "", d.decided_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


def serve(svc, args) -> None:
    app = create_app(svc.repository, svc.settings)
    console.print(f"[dim]Serving verification API on http://{args.host}:{args.port}[/dim]")
    app.run(host=args.host, port=args.port, debug=args.debug)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vetverify",
        description="Veterinarian and vendor verification workflow",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1],
    )
    parser.add_argument("--config", metavar="PATH", help="Policy YAML (default: bundled verification.yaml)")
    parser.add_argument("--data-dir", metavar="DIR", help="Data directory for the json backend")
    parser.add_argument("--backend", choices=["json", "memory"], help="Repository backend")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("queue", help="List pending professionals")
    p.add_argument("--search", "-s", help="Match name or email")
    p.add_argument("--role", "-r", default="all", choices=["all", "veterinarian", "vendor"])
    p.add_argument("--page", "-p", type=int, default=1)
    p.add_argument("--page-size", type=int)
    p.set_defaults(handler=show_queue)

    p = sub.add_parser("decide", help="Approve or reject accounts")
    p.add_argument("account_ids", nargs="+", metavar="ACCOUNT_ID")
    p.add_argument("--decision", "-d", required=True, choices=["approved", "rejected"])
    p.add_argument("--reason", help="Rejection reason")
    p.add_argument("--comments", help="Comments for the professional")
    p.add_argument("--admin-id", help="Admin recorded on the decision")
    p.set_defaults(handler=decide)

    p = sub.add_parser("export", help="CSV of approved professionals")
    p.add_argument("--output", "-o", help="Write to file instead of stdout")
    p.set_defaults(handler=export)

    p = sub.add_parser("history", help="Decision history for an account")
    p.add_argument("account_id")
    p.set_defaults(handler=show_history)

    sub.add_parser("reconcile", help="Repair status drift").set_defaults(handler=reconcile)
    sub.add_parser("remind", help="Send document reminders").set_defaults(handler=remind)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=5001)
    p.add_argument("--debug", action="store_true")
    p.set_defaults(handler=serve)

    return parser


def cli(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2
    if args.data_dir:
        settings.data_dir = Path(args.data_dir)
    if args.backend:
        settings.backend = args.backend
    configure_logging(settings.log_level)

    svc = build_services(settings=settings)
    try:
        return args.handler(svc, args) or 0
    except VerificationError as e:
        console.print(f"[red]{e.message}[/red]")
        return 1


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
