"""
Estimate Admin CLI

Command-line administration for the estimate workflow.

Commands:
- init-db: Create database tables
- create-company: Create a company and print its join code
- create-contractor: Create a contractor, optionally inside a company
- list-team: List the members of a company
- list-handoffs: List handoffs assigned to a technician
"""

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from basecore.db import session_scope
from basecore.logging import setup_logging

app = typer.Typer(
    name="estimate-admin",
    help="Estimate workflow administration CLI",
)

console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
):
    setup_logging(log_level)


@app.command()
def init_db():
    """Create all tables on the configured DATABASE_URL."""
    from estimate_core.persistence import init_db as _init_db

    _init_db()
    rprint("[green]Database tables created[/green]")


@app.command()
def create_company(
    name: Optional[str] = typer.Option(None, help="Company name"),
    address: Optional[str] = typer.Option(None, help="Business address"),
    license_number: Optional[str] = typer.Option(None, help="Contractor license number"),
    tax_id: Optional[str] = typer.Option(None, help="Tax ID"),
    payment_method: Optional[str] = typer.Option(None, help="Payment method"),
):
    """Create a company. Contractors join it with the printed company code."""
    with session_scope() as db:
        from estimate_core.persistence.repo import TenantScopedStore, setup_status

        fields = {
            "name": name,
            "address": address,
            "license_number": license_number,
            "tax_id": tax_id,
            "payment_method": payment_method,
        }
        store = TenantScopedStore(db)
        company = store.create_company(**{k: v for k, v in fields.items() if v})
        db.commit()

        status = setup_status(company)
        rprint("[green]Company created:[/green]")
        rprint(f"  ID: {company.id}")
        rprint(f"  Code: {company.company_code}")
        rprint(f"  Setup: {status['progress']}% complete")
        if status["missing_fields"]:
            rprint(f"  Missing: {', '.join(status['missing_fields'])}")


@app.command()
def create_contractor(
    email: str = typer.Argument(..., help="Contractor email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password"),
    role: str = typer.Option("tech", help="Role (owner_admin, office, or tech)"),
    company_code: Optional[str] = typer.Option(None, help="Join code of the company"),
):
    """Create a contractor account."""
    from estimate_core.contracts.identity import ContractorRole

    try:
        contractor_role = ContractorRole(role)
    except ValueError:
        rprint(f"[red]Invalid role: {role}[/red]")
        raise typer.Exit(1)

    with session_scope() as db:
        from estimate_core.persistence.repo import TenantScopedStore
        from estimate_core.security import get_password_hash

        store = TenantScopedStore(db)

        if store.get_contractor_by_email(email):
            rprint(f"[yellow]Contractor already exists: {email}[/yellow]")
            raise typer.Exit(1)

        company_id = None
        if company_code:
            company = store.get_company_by_code(company_code)
            if not company:
                rprint(f"[red]No company with code: {company_code}[/red]")
                raise typer.Exit(1)
            company_id = company.id

        contractor = store.create_contractor(
            email=email,
            password_hash=get_password_hash(password),
            role=contractor_role,
            company_id=company_id,
        )
        db.commit()

        rprint("[green]Contractor created:[/green]")
        rprint(f"  ID: {contractor.id}")
        rprint(f"  Email: {contractor.email}")
        rprint(f"  Role: {contractor.role}")
        rprint(f"  Company: {contractor.company_id or '-'}")


@app.command()
def list_team(
    company_code: str = typer.Argument(..., help="Join code of the company"),
):
    """List the members of a company, newest first."""
    with session_scope() as db:
        from estimate_core.persistence.repo import TenantScopedStore

        store = TenantScopedStore(db)
        company = store.get_company_by_code(company_code)
        if not company:
            rprint(f"[red]No company with code: {company_code}[/red]")
            raise typer.Exit(1)

        members = store.get_contractors_by_company_id(company.id)
        if not members:
            rprint("[yellow]No contractors found[/yellow]")
            return

        table = Table(title=f"Team of {company.name or company.company_code}")
        table.add_column("ID", style="dim")
        table.add_column("Email")
        table.add_column("Role")
        table.add_column("Created")

        for member in members:
            table.add_row(
                member.id[:8] + "...",
                member.email,
                member.role,
                member.created_at.strftime("%Y-%m-%d %H:%M") if member.created_at else "-",
            )

        console.print(table)


@app.command()
def list_handoffs(
    tech_email: str = typer.Argument(..., help="Technician email"),
):
    """
    List handoffs assigned to a technician.

    Reads the shared key-value store, so KV_BACKEND should be "redis".
    """
    with session_scope() as db:
        from estimate_core.persistence.kv import build_kv_store
        from estimate_core.persistence.repo import TenantScopedStore
        from estimate_core.workflow.handoff import HandoffStateMachine

        tech = TenantScopedStore(db).get_contractor_by_email(tech_email)
        if not tech or not tech.company_id:
            rprint(f"[red]No technician with a company: {tech_email}[/red]")
            raise typer.Exit(1)

        machine = HandoffStateMachine(build_kv_store())
        handoffs = machine.get_all_handoffs_for_tech(tech.id, tech.company_id)
        if not handoffs:
            rprint("[yellow]No handoffs found[/yellow]")
            return

        table = Table(title=f"Handoffs for {tech.email}")
        table.add_column("Estimate", style="dim")
        table.add_column("Status")
        table.add_column("Handed off")
        table.add_column("Pricing locked")

        for handoff in handoffs:
            status_style = "green" if handoff.status.is_terminal else "cyan"
            table.add_row(
                handoff.estimate_id,
                f"[{status_style}]{handoff.status.value}[/{status_style}]",
                handoff.handed_off_at.strftime("%Y-%m-%d %H:%M"),
                "yes" if handoff.locked_pricing else "no",
            )

        console.print(table)


if __name__ == "__main__":
    app()
