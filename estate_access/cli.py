"""Estate Access CLI tool (estatectl)."""

import typer

app = typer.Typer(name="estatectl", help="Estate Access CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


def _mysql_server_params():
    """Split the configured MySQL URL into server connect kwargs and database name."""
    from sqlalchemy.engine import make_url
    from estate_access.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        return None, url.database
    params = {
        "host": url.host or "localhost",
        "port": url.port or 3306,
        "user": url.username,
        "password": url.password or "",
    }
    return params, url.database


@db_app.command("create")
def db_create():
    """Create the database (MySQL) and all tables."""
    import pymysql
    from estate_access.db.base import Base
    from estate_access.db.session import engine
    import estate_access.models  # noqa: F401  registers tables on Base.metadata

    params, db_name = _mysql_server_params()
    if params:
        conn = pymysql.connect(**params)
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS `{db_name}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
            conn.commit()
        finally:
            conn.close()
    Base.metadata.create_all(bind=engine)
    typer.echo(f"✅ Database '{db_name}' and tables ready")


@db_app.command("seed")
def db_seed():
    """Seed permissions, roles, the menu, and the super-admin."""
    from estate_access.db.session import SessionLocal
    from estate_access.db.seeds.seed_roles import seed_roles
    from estate_access.db.seeds.seed_menu import seed_menu
    from estate_access.db.seeds.seed_super_admin import seed_super_admin

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_menu(db)
        seed_super_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate all tables (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP every table. Continue?")
    if not confirm:
        raise typer.Abort()
    from estate_access.db.base import Base
    from estate_access.db.session import engine
    import estate_access.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables dropped and recreated")


@app.command("token")
def issue_token(email: str = typer.Argument(..., help="User email")):
    """Mint an access token for an existing user."""
    from estate_access.core.exceptions import ResourceNotFoundError
    from estate_access.db.session import SessionLocal
    from estate_access.services.auth_service import auth_service

    db = SessionLocal()
    try:
        user = auth_service.get_user_by_email(db, email)
        typer.echo(auth_service.issue_token(db, user))
    except ResourceNotFoundError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()


@app.command("menu")
def show_menu(
    token: str = typer.Option(None, envvar="ESTATE_TOKEN", help="Bearer token; omit for the public menu"),
    base_url: str = typer.Option("http://localhost:8000", help="API base URL"),
    lang: str = typer.Option("en", help="Label language: en or ar"),
):
    """Print the caller's menu as a tree."""
    import httpx

    if token:
        resp = httpx.get(f"{base_url}/api/menu-items", headers={"Authorization": f"Bearer {token}"})
    else:
        resp = httpx.get(f"{base_url}/api/menu-items/public")
    if resp.status_code != 200:
        typer.echo(resp.json().get("detail", resp.text), err=True)
        raise typer.Exit(code=1)

    depth = {}
    for item in resp.json():
        level = depth.get(item["parent_id"], -1) + 1
        depth[item["id"]] = level
        label = item["label_ar"] if lang == "ar" else item["label_en"]
        typer.echo(f"{'  ' * level}- {label} ({item['path']})")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("estate_access.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
