"""
Flask CLI commands for initial setup:

    flask --app api seed-roles
    flask --app api create-admin --username root --email root@example.com
"""
from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from models import storage
from models.person import Person
from models.role import Role, RoleUser
from models.user import User
from utils.security import hash_password


def ensure_role(role_name: str, description: str | None = None) -> Role:
    session = storage.get_session()
    role = session.query(Role).filter(Role.role_name == role_name).first()
    if role is None:
        role = Role(role_name=role_name, description=description)
        storage.new(role)
        storage.save()
    return role


@click.command("seed-roles")
@with_appcontext
def seed_roles():
    """Create the privileged and default roles if missing."""
    admin = ensure_role(current_app.config["ADMIN_ROLE_NAME"], "Full administrative access")
    default = ensure_role(current_app.config["DEFAULT_ROLE_NAME"], "Default role for new users")
    click.echo(f"roles ready: {admin.role_name}, {default.role_name}")


@click.command("create-admin")
@with_appcontext
@click.option("--username", required=True)
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--document-number", default=None, help="Defaults to ADMIN-<username>")
def create_admin(username: str, email: str, password: str, document_number: str | None):
    """Create a user holding the privileged role, or grant it to an existing one."""
    role = ensure_role(current_app.config["ADMIN_ROLE_NAME"], "Full administrative access")
    session = storage.get_session()
    user = session.query(User).filter(User.username == username).first()
    if user is None:
        person = Person(
            first_name=username,
            last_name="",
            document_number=document_number or f"ADMIN-{username}",
            is_active=True,
        )
        user = User(
            username=username,
            email=email.strip().lower(),
            password_hash=hash_password(password),
            person=person,
            is_active=True,
        )
        storage.new(person)
        storage.new(user)
        try:
            storage.save()
        except IntegrityError as exc:
            raise click.ClickException(f"could not create {username}: email or document number already in use") from exc
        status = "created"
    else:
        status = "promoted"

    assignment = (
        session.query(RoleUser)
        .filter(RoleUser.user_id == user.id, RoleUser.role_id == role.id)
        .first()
    )
    if assignment is None:
        storage.new(RoleUser(user_id=user.id, role_id=role.id, is_active=True))
    else:
        assignment.is_active = True
    storage.save()
    click.echo(f"{status} admin user {username} (id: {user.id})")


def register_commands(app):
    app.cli.add_command(seed_roles)
    app.cli.add_command(create_admin)
