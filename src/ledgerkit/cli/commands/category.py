"""Categorization rule commands."""

import click
from ledgerkit.cli.error_handling import exit_if_invalid, handle_domain_error


@click.group()
def category_group():
    """Categorize transactions with pattern rules."""
    pass


@category_group.command("rule-add")
@click.argument("name", metavar="NAME")
@click.option("--pattern", required=True, help="Regular expression matched against descriptions")
@click.option("--category", required=True, help="Category to suggest")
@click.option("--subcategory", help="Subcategory to suggest")
@click.option("--confidence", type=float, help="Confidence between 0 and 1 (defaults to LEDGERKIT_DEFAULT_RULE_CONFIDENCE)")
@click.pass_context
def add_rule(
    ctx,
    name: str,
    pattern: str,
    category: str,
    subcategory: str | None,
    confidence: float | None,
):
    """Add a categorization rule.

    Examples:
        ledgerkit category rule-add "Coffee" --pattern "starbucks|costa" --category Meals
        ledgerkit category rule-add "Rent" --pattern "\\brent\\b" --category Occupancy --confidence 0.9
    """
    categorization = ctx.obj["engine"].categorization

    result = categorization.create_rule(
        name=name,
        pattern=pattern,
        category=category,
        subcategory=subcategory,
        confidence=confidence,
    )
    exit_if_invalid(ctx, result.validation, "Rule")
    click.echo(f"Created categorization rule '{result.rule.name}' (ID: {result.rule.id})")


@category_group.command("rules")
@click.option(
    "--origin",
    type=click.Choice(["learned", "manual"], case_sensitive=False),
    help="Only auto-learned or only manually created rules",
)
@click.pass_context
def list_rules(ctx, origin: str | None):
    """List categorization rules."""
    categorization = ctx.obj["engine"].categorization

    machine_generated = None if origin is None else origin.lower() == "learned"
    rules = categorization.list_rules(machine_generated=machine_generated)
    if not rules:
        click.echo("No categorization rules found.")
        return

    for rule in rules:
        target = rule.category if rule.subcategory is None else f"{rule.category} > {rule.subcategory}"
        kind = "learned" if rule.machine_generated else "manual"
        click.echo(
            f"ID: {rule.id:3d} | {rule.name:25s} | /{rule.pattern}/ -> {target} | "
            f"{rule.confidence:.2f} | used {rule.usage_count}x | {kind}"
        )


@category_group.command("suggest")
@click.argument("description", metavar="DESCRIPTION")
@click.pass_context
def suggest_category(ctx, description: str):
    """Suggest a category for a transaction description.

    Examples:
        ledgerkit category suggest "Rent due April"
    """
    categorization = ctx.obj["engine"].categorization

    result = categorization.categorize(description)
    if result.category is None:
        click.echo("No matching category.")
        return

    target = result.category if result.subcategory is None else f"{result.category} > {result.subcategory}"
    click.echo(f"{target} (confidence {result.confidence:.2f}, rule {result.rule_id})")


@category_group.command("learn")
@click.argument("description", metavar="DESCRIPTION")
@click.option("--category", required=True, help="Correct category for the description")
@click.option("--subcategory", help="Correct subcategory")
@click.pass_context
def learn_category(ctx, description: str, category: str, subcategory: str | None):
    """Teach the categorizer the right category for a description.

    Keywords of the description become learned rules, or boost the learned
    rules that already point at this category.

    Examples:
        ledgerkit category learn "Monthly rent payment" --category Occupancy
    """
    categorization = ctx.obj["engine"].categorization

    try:
        result = categorization.learn_from_correction(description, category, subcategory)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not result.keywords:
        click.echo("No keywords found in the description; nothing learned.")
        return
    click.echo(f"Keywords: {', '.join(result.keywords)}")
    click.echo(f"  Created: {len(result.created)} rules")
    click.echo(f"  Boosted: {len(result.boosted)} rules")


@category_group.command("prune")
@click.option("--below", type=float, required=True, help="Delete learned rules with confidence under this value")
@click.pass_context
def prune_rules(ctx, below: float):
    """Delete weak auto-learned rules.

    Examples:
        ledgerkit category prune --below 0.5
    """
    categorization = ctx.obj["engine"].categorization

    pruned = categorization.prune_machine_generated(below)
    click.echo(f"Pruned {pruned} learned rule{'s' if pruned != 1 else ''}")


@category_group.command("rule-delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a categorization rule."""
    categorization = ctx.obj["engine"].categorization

    try:
        categorization.delete_rule(rule_id)
        click.echo(f"Deleted categorization rule {rule_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
