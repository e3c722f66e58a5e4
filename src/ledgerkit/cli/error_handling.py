"""CLI error handling helpers."""

import click

from ledgerkit.domain.entities import ValidationResult
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.validation import format_errors, format_warnings


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def exit_if_invalid(ctx: click.Context, validation: ValidationResult, action: str) -> None:
    """Render validation errors and exit with failure when there are any."""
    if validation.is_valid:
        return
    click.echo(f"Error: {action} failed validation:", err=True)
    for message in format_errors(validation):
        click.echo(f"  {message}", err=True)
    ctx.exit(1)


def echo_warnings(validation: ValidationResult) -> None:
    """Render validation warnings."""
    for message in format_warnings(validation):
        click.echo(f"Warning: {message}", err=True)
