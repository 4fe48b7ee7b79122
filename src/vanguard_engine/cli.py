"""Typer CLI for Vanguard-Engine."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(name="vanguard", help="Vanguard-Engine: multi-tenant access control and visit tracking")
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: VANGUARD_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: VANGUARD_PORT)"),
):
    """Start the Vanguard-Engine API server."""
    import uvicorn
    from vanguard_engine.app import create_app
    from vanguard_engine.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Vanguard-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


async def _bootstrap() -> tuple[list[str], dict]:
    from vanguard_engine.deps import get_cache, get_db, get_role_store

    db = get_db()
    await db.init()
    await db.create_all()
    roles = get_role_store()
    try:
        async with db.get_session() as session:
            created = await roles.ensure_catalog(session)
        summary = await roles.reconcile_all_tenants(db)
    finally:
        await get_cache().close()
        await db.close()
    return created, summary


@app.command()
def bootstrap():
    """Apply the permission catalog and reconcile default roles for all tenants."""
    created, summary = asyncio.run(_bootstrap())
    console.print(f"Permission keys added: [bold]{len(created)}[/bold]")
    console.print(f"Tenants reconciled: [bold]{summary['reconciled']}[/bold]")
    if summary["failed"]:
        console.print(f"[bold red]Failed tenants:[/bold red] {', '.join(summary['failed'])}")
        raise typer.Exit(1)


async def _create_superadmin(
    email: str, password: str, tenant_slug: str, tenant_name: str,
    first_name: str, last_name: str,
):
    from vanguard_engine.deps import (
        get_cache,
        get_db,
        get_role_store,
        get_tenant_service,
        get_user_service,
    )

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            await get_role_store().ensure_catalog(session)
            tenant = await get_tenant_service().ensure_tenant(session, tenant_name, tenant_slug)
            user, created = await get_user_service().ensure_super_admin(
                session, tenant.id, email, password,
                first_name=first_name, last_name=last_name,
            )
            return user.id, tenant.slug, created
    finally:
        await get_cache().close()
        await db.close()


@app.command("create-superadmin")
def create_superadmin(
    email: str = typer.Argument(..., help="Login email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    tenant_slug: str = typer.Option("platform", help="Tenant to create the account in"),
    tenant_name: str = typer.Option("Platform", help="Name used if the tenant is created"),
    first_name: str = typer.Option("", help="First name"),
    last_name: str = typer.Option("", help="Last name"),
):
    """Create a superadmin account, or promote an existing one (idempotent)."""
    user_id, slug, created = asyncio.run(
        _create_superadmin(email, password, tenant_slug, tenant_name, first_name, last_name)
    )
    verb = "Created" if created else "Promoted"
    console.print(f"[bold green]{verb}[/bold green] superadmin {email} ({user_id}) in {slug}")


@app.command("verify-token")
def verify_token(
    token: str = typer.Argument(..., help="Visit token or scan URL"),
):
    """Verify a visit token offline (MAC check only)."""
    from vanguard_engine.common.config import get_settings
    from vanguard_engine.visits.tokens import token_from_scan, verify_token as check

    settings = get_settings()
    result = check(
        token_from_scan(token),
        settings.qr_secret,
        tag=settings.qr_token_tag,
        mac_length=settings.qr_mac_length,
    )
    if result.valid:
        console.print(f"[bold green]VALID[/bold green] visit {result.visit_id}")
    else:
        console.print("[bold red]INVALID[/bold red] token")
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Vanguard-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
