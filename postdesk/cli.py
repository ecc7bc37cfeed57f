"""Command-line interface for postdesk."""

import os
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from .core.audit_log import AuditLogger
from .core.auth import AuthManager
from .core.config import AppConfig
from .core.models import DatabaseSchema, Role, User
from .core.posts import PostRepository
from .core.session_store import SessionStore
from .core.storage import Storage, StorageError


def _fail(message: str):
    click.echo(click.style("Error: ", fg="red") + message)
    sys.exit(1)


def _load_storage(base_dir: Path | None) -> tuple[AppConfig, Storage]:
    """Open an initialized site or exit with an error."""
    try:
        config = AppConfig.from_env(base_dir=base_dir or Path.cwd())
    except ValueError as e:
        _fail(str(e))

    storage = Storage(config.db_path)
    if not storage.exists:
        _fail("Site not initialized. Run 'postdesk init' first.")

    try:
        storage.load()
    except StorageError as e:
        _fail(str(e))

    return config, storage


def _make_user(auth: AuthManager, username: str, password: str, role: Role) -> User:
    try:
        return User(username=username, password_hash=auth.hash_password(password), role=role)
    except ValidationError as e:
        _fail(e.errors()[0]["msg"])


dir_option = click.option(
    "--dir",
    "-d",
    "base_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Site directory; the current directory when omitted",
)

ssl_path = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.group()
@click.version_option(prog_name="postdesk")
def main():
    """postdesk - edit your blog posts from the browser."""


@main.command()
@dir_option
@click.option("--admin", "admin_name", default="admin", help="Name of the first user")
@click.option("--force", "-f", is_flag=True, help="Replace an existing database")
def init(base_dir: Path | None, admin_name: str, force: bool):
    """Create the database and an admin user with a generated password."""
    config = AppConfig(base_dir=base_dir or Path.cwd())
    storage = Storage(config.db_path)
    if storage.exists and not force:
        _fail(f"Database already exists at {config.db_path} (pass --force to replace it)")

    auth = AuthManager(bcrypt_rounds=config.bcrypt_rounds)
    password = auth.generate_password()
    user = _make_user(auth, admin_name, password, Role.ADMIN)

    config.ensure_directories()
    storage.initialize()
    storage.set_item("users", user.username, user.model_dump(mode="json"))

    summary = [
        click.style("postdesk initialized successfully!", fg="green", bold=True),
        "",
        f"  Login URL:  http://{config.host}:{config.port}/login",
        f"  Username:   {user.username}",
        f"  Password:   {password}",
        "",
        click.style("Save this password, it is not shown again.", fg="yellow", bold=True),
    ]
    click.echo("\n".join(summary))


@main.command()
@dir_option
@click.option("--host", "-h", default=None, help="Bind address [POSTDESK_HOST]")
@click.option("--port", "-p", type=int, default=None, help="Bind port [POSTDESK_PORT]")
@click.option("--workers", "-w", type=int, default=None, help="Worker processes [POSTDESK_WORKERS]")
@click.option("--reload", is_flag=True, help="Restart on code changes")
@click.option("--ssl-keyfile", type=ssl_path, default=None, help="TLS private key")
@click.option("--ssl-certfile", type=ssl_path, default=None, help="TLS certificate")
def run(base_dir, host, port, workers, reload, ssl_keyfile, ssl_certfile):
    """Serve the site with uvicorn.

    TLS is enabled when both --ssl-keyfile and --ssl-certfile are given.
    """
    import uvicorn

    config, _ = _load_storage(base_dir)

    tls = {"ssl_keyfile": ssl_keyfile, "ssl_certfile": ssl_certfile}
    if any(tls.values()) and not all(tls.values()):
        _fail("--ssl-keyfile and --ssl-certfile go together.")

    options = {
        "host": host or config.host,
        "port": port or config.port,
        "reload": reload,
        "workers": 1 if reload else (workers or config.workers),
    }
    if all(tls.values()):
        options.update({name: str(path) for name, path in tls.items()})

    # Workers import the app fresh and read their config from the environment
    os.environ["POSTDESK_BASE_DIR"] = str(config.base_dir)

    scheme = "https" if all(tls.values()) else "http"
    click.echo(f"Starting postdesk on {scheme}://{options['host']}:{options['port']}")
    uvicorn.run("postdesk.main:app", **options)


@main.command("add-user")
@click.argument("username")
@dir_option
@click.option("--admin", "is_admin", is_flag=True, help="Give the user the admin role")
@click.password_option(help="Password (prompted if omitted)")
def add_user(username: str, base_dir: Path | None, is_admin: bool, password: str):
    """Create a user who can log in and edit their own posts."""
    config, storage = _load_storage(base_dir)

    if len(password) < config.password_min_length:
        _fail(f"Password must be at least {config.password_min_length} characters.")

    auth = AuthManager(bcrypt_rounds=config.bcrypt_rounds)
    user = _make_user(auth, username, password, Role.ADMIN if is_admin else Role.AUTHOR)
    if storage.get_item("users", user.username) is not None:
        _fail(f"User {user.username} already exists.")

    storage.set_item("users", user.username, user.model_dump(mode="json"))
    click.echo(click.style("Created user ", fg="green") + user.username)


@main.command("new-post")
@click.option("--owner", "-o", required=True, help="Username that owns the post")
@click.option("--title", "-t", required=True, help="Post title")
@click.option("--slug", "-s", default=None, help="Post slug (default: derived from title)")
@click.option(
    "--markdown-file",
    "-m",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="File with the markdown body ('-' for stdin)",
)
@dir_option
def new_post(owner: str, title: str, slug: str | None, markdown_file, base_dir: Path | None):
    """Create a post owned by an existing user."""
    _, storage = _load_storage(base_dir)

    owner = owner.lower()
    if storage.get_item("users", owner) is None:
        _fail(f"No such user: {owner}")

    markdown = markdown_file.read() if markdown_file else ""
    try:
        post = PostRepository(storage).create_post(
            owner=owner, title=title, markdown=markdown, slug=slug
        )
    except ValueError as e:
        _fail(str(e))

    click.echo(click.style("Created post ", fg="green") + f"/posts/{post.slug}")


@main.command("list-posts")
@click.option("--owner", "-o", default=None, help="Only posts owned by this user")
@dir_option
def list_posts(owner: str | None, base_dir: Path | None):
    """List posts, newest first."""
    _, storage = _load_storage(base_dir)

    posts = PostRepository(storage).list_posts(user_id=owner.lower() if owner else None)
    if not posts:
        click.echo("No posts.")
        return

    for post in posts:
        click.echo(f"{post.slug}\t{post.owner}\t{post.title}")


@main.command()
@dir_option
def backup(base_dir: Path | None):
    """Create a backup of the site database."""
    config, storage = _load_storage(base_dir)

    backup_path = storage.backup(config.backups_dir)
    click.echo(click.style("Backup created: ", fg="green") + str(backup_path))


@main.command("hash-password")
@click.password_option("--password", "-p", confirmation_prompt=False, help="Password to hash")
def hash_password(password: str):
    """Print a bcrypt hash, e.g. for editing db.json by hand."""
    click.echo(AuthManager().hash_password(password))


@main.command("check")
@dir_option
def check(base_dir: Path | None):
    """Validate the database against the schema."""
    config, storage = _load_storage(base_dir)

    try:
        db = DatabaseSchema.model_validate(storage.load())
    except ValidationError as e:
        click.echo(click.style("Database is invalid:", fg="red", bold=True))
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            click.echo(f"  {location}: {error['msg']}")
        sys.exit(1)

    orphans = [p.slug for p in db.posts.values() if p.owner not in db.users]
    if orphans:
        click.echo(
            click.style("Warning: ", fg="yellow")
            + f"Posts owned by unknown users: {', '.join(orphans)}"
        )

    click.echo(
        click.style("OK: ", fg="green")
        + f"{len(db.users)} users, {len(db.posts)} posts in {config.db_path}"
    )


@main.command()
@click.option("--revoke", "revoke_user", default=None, help="Log this user out everywhere")
@dir_option
def sessions(revoke_user: str | None, base_dir: Path | None):
    """Show active sessions, or revoke a user's sessions."""
    config, _ = _load_storage(base_dir)
    auth = AuthManager(session_store=SessionStore(config.sessions_file))

    if revoke_user:
        removed = auth.invalidate_user_sessions(revoke_user.lower())
        click.echo(click.style("Revoked ", fg="green") + f"{removed} session(s) of {revoke_user.lower()}")
        return

    auth.cleanup_expired_sessions()
    click.echo(f"{auth.get_session_count()} active session(s)")


@main.command()
@click.option("--limit", "-n", default=20, type=int, help="Number of entries (default: 20)")
@dir_option
def audit(limit: int, base_dir: Path | None):
    """Show recent audit log entries, newest first."""
    config, _ = _load_storage(base_dir)

    entries = AuditLogger(config.audit_log_path).read_recent(limit)
    if not entries:
        click.echo("No audit entries.")
        return

    for entry in entries:
        details = " ".join(f"{k}={v}" for k, v in entry.get("details", {}).items())
        click.echo(
            f"{entry['timestamp']}  {entry['event']:<14} {entry['actor']:<16} "
            f"{entry.get('ip') or '-'}  {details}".rstrip()
        )


if __name__ == "__main__":
    main()
