#!/usr/bin/python3

import click

from equation_deploy.percent import format_percent
from equation_deploy.types import MinInt, Percent


@click.command()
@click.option(
    "--percent",
    "percents",
    help="Percent string to encode, e.g. 0.05%",
    type=Percent(),
    multiple=True,
)
@click.option(
    "--rate",
    "rates",
    help="Fixed-point rate to decode",
    type=MinInt(0),
    multiple=True,
)
def cli(percents, rates):
    """Convert between percent strings and fixed-point rates (1% == 1000000)."""
    for rate in percents:
        click.echo(f"{format_percent(rate)} = {rate}")
    for rate in rates:
        click.echo(f"{rate} = {format_percent(rate)}")


if __name__ == "__main__":
    cli()
