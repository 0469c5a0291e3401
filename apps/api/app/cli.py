"""CLI tools for wrrk administration."""

import click
from fastapi import HTTPException

from app.db.models import Organization, User
from app.db.session import SessionLocal
from app.services import assignment_service, user_service


@click.group()
def cli():
    """wrrk CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--owner-email", required=True, help="First owner's email address")
@click.option("--owner-name", required=True, help="First owner's display name")
def create_org(name: str, slug: str, owner_email: str, owner_name: str):
    """
    Create organization and its first Owner.

    This is the bootstrap command for setting up a new tenant. The Owner is
    the root of the organization's hierarchy.

    Example:
        python -m app.cli create-org --name "Acme" --slug acme --owner-email a@acme.com --owner-name "Ada"
    """
    db = SessionLocal()
    try:
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum():
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores)")
            return

        org, owner = user_service.bootstrap_organization(
            db,
            name=name,
            slug=slug,
            owner_email=owner_email,
            owner_display_name=owner_name,
        )
        click.echo(f"✓ Created organization: {org.name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {org.slug}")
        click.echo(f"✓ Created owner {owner.email} ({owner.id})")

    except HTTPException as e:
        db.rollback()
        click.echo(f"❌ {e.detail}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(org_slug: str, email: str):
    """
    Revoke all sessions for a user by bumping token_version.

    Existing tokens with the old version fail validation immediately.
    """
    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.slug == org_slug.lower()).first()
        if not org:
            click.echo(f"❌ Organization not found: {org_slug}")
            return

        user = user_service.get_user_by_email(db, org.id, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        user.token_version += 1
        db.commit()
        click.echo(f"✓ Revoked all sessions for {email} (token_version={user.token_version})")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
def rotation(org_slug: str):
    """Show the round-robin agent order for an organization."""
    db = SessionLocal()
    try:
        org = db.query(Organization).filter(Organization.slug == org_slug.lower()).first()
        if not org:
            click.echo(f"❌ Organization not found: {org_slug}")
            return

        agent_ids = assignment_service.list_rotation_agents(db, org.id)
        if not agent_ids:
            click.echo("No active agents; escalated tickets stay unassigned.")
            return

        users = {u.id: u for u in db.query(User).filter(User.id.in_(agent_ids)).all()}
        for position, agent_id in enumerate(agent_ids):
            click.echo(f"{position:>3}  {users[agent_id].email}  {agent_id}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
