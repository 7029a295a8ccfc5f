"""Entry point for the Health Rocket back-end."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthrocket.catalog.registry import ChallengeCatalog
from healthrocket.config import settings
from healthrocket.health.manager import HealthAssessmentManager
from healthrocket.health.store import HealthAssessmentStore
from healthrocket.users.store import UserStore

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Health Rocket API Server", style="bold green"))
    uvicorn.run(
        "healthrocket.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def show_catalog(category: str | None) -> None:
    catalog = ChallengeCatalog()
    table = Table(title="Challenge catalog")
    for column in ("ID", "Name", "Category", "Tier", "Days", "FP", "Premium"):
        table.add_column(column)
    for c in catalog.list(category=category):
        table.add_row(
            c.id, c.name, c.category, str(c.tier), str(c.duration),
            str(c.fuel_points), "yes" if c.is_premium else "",
        )
    console.print(table)


def create_user(name: str, email: str) -> None:
    try:
        user = UserStore().create(name=name, email=email)
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        sys.exit(1)
    console.print(Panel(
        f"id: {user.id}\ntoken: {user.access_token}",
        title=f"Created {user.email}",
        style="bold blue",
    ))


def show_eligibility(user_id: str) -> None:
    manager = HealthAssessmentManager(HealthAssessmentStore(), UserStore())
    result = manager.check_eligibility(user_id)
    if result.can_update:
        console.print("[bold green]Eligible for a new health assessment[/bold green]")
    else:
        console.print(
            f"[yellow]Next assessment in {result.days_until_update} days[/yellow] "
            f"[dim](last {result.last_assessment_at})[/dim]"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Health Rocket back-end")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    catalog_parser = sub.add_parser("catalog", help="List catalog challenges")
    catalog_parser.add_argument("--category", default=None)

    user_parser = sub.add_parser("create-user", help="Create a user and print its API token")
    user_parser.add_argument("name")
    user_parser.add_argument("email")

    elig_parser = sub.add_parser("eligibility", help="Show health assessment eligibility")
    elig_parser.add_argument("user_id")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "catalog":
        show_catalog(args.category)
    elif args.command == "create-user":
        create_user(args.name, args.email)
    elif args.command == "eligibility":
        show_eligibility(args.user_id)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
