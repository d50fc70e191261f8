import click
from werkzeug.security import generate_password_hash

from library_api.extensions import db
from library_api.models.user import Role, User
from library_api.repositories.user_repo import UserRepo
from library_api.utils.transaction import atomic

ADMIN_EMAIL = "admin@admin.com"


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("seed-admin")
    @click.option("--password", default="admin123!", show_default=True)
    def seed_admin(password):
        """Create the default administrator if it does not exist yet."""
        if UserRepo.get_by_email(ADMIN_EMAIL):
            click.echo(f"{ADMIN_EMAIL} already exists.")
            return
        with atomic("cli"):
            UserRepo.add(User(
                name="Default Admin",
                email=ADMIN_EMAIL,
                password_hash=generate_password_hash(password),
                library_id="LIB-ADMIN-0001",
                role=Role.ADMIN,
            ))
        click.echo(f"Created {ADMIN_EMAIL}.")
