"""CLI commands for Flask application."""

import json

import click
from flask.cli import with_appcontext
from pydantic import ValidationError


@click.group()
def rewards():
    """Reward pool commands."""
    pass


@rewards.command("import-names")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_names(path):
    """Load reward names from a JSON list into the pool."""
    from anithing.services.reward_service import RewardService

    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)

    if not isinstance(records, list):
        raise click.ClickException("Expected a JSON list of name records")

    try:
        result = RewardService().load_reward_names(records)
    except ValidationError as e:
        click.echo(f"Rejected {e.error_count()} field(s):", err=True)
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            click.echo(f"  {loc}: {err['msg']}", err=True)
        raise click.ClickException("Import aborted, nothing was written")

    click.echo(f"Done! {result['created']} created, {result['updated']} updated")


@rewards.command("pool-status")
@with_appcontext
def pool_status():
    """Show active name counts per tier and flag empty tiers."""
    from anithing import db
    from anithing.models.reward import TIER_ORDER, RewardName

    counts = dict(
        db.session.query(RewardName.tier, db.func.count(RewardName.id))
        .filter(RewardName.is_active.is_(True))
        .group_by(RewardName.tier)
        .all()
    )
    empty = [tier.value for tier in TIER_ORDER if not counts.get(tier.value)]
    for tier in TIER_ORDER:
        count = counts.get(tier.value, 0)
        marker = "  <- EMPTY" if tier.value in empty else ""
        click.echo(f"  {tier.value:<10} {count}{marker}")

    if empty:
        raise click.ClickException(f"No active names for: {', '.join(empty)}")


@rewards.command("odds")
def show_odds():
    """Print the per-tier odds for every box type."""
    from anithing.services.reward_resolver import odds_table

    for box_type, bands in odds_table().items():
        click.echo(f"{box_type}:")
        for band in bands:
            click.echo(f"  {band['tier']:<10} {band['probability'] * 100:8.4f}%")


@click.group()
def catalog():
    """Title catalog commands."""
    pass


@catalog.command("import-titles")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_titles(path):
    """Upsert titles from a JSON list (matched on anilist_id when present)."""
    from anithing import db
    from anithing.models.library import MediaType, Title

    with open(path, encoding="utf-8") as fh:
        records = json.load(fh)

    columns = {c.name for c in Title.__table__.columns} - {"id", "created_at", "updated_at"}
    media_types = {m.value for m in MediaType}
    created = updated = 0

    for record in records:
        if record.get("media_type") not in media_types or not record.get("title"):
            raise click.ClickException(f"Invalid title record: {record!r}")

        fields = {k: v for k, v in record.items() if k in columns}
        existing = None
        if fields.get("anilist_id") is not None:
            existing = Title.query.filter_by(anilist_id=fields["anilist_id"]).first()

        if existing:
            for key, value in fields.items():
                setattr(existing, key, value)
            updated += 1
        else:
            db.session.add(Title(**fields))
            created += 1

    db.session.commit()
    click.echo(f"Done! {created} created, {updated} updated")
