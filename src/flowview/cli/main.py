"""
flowview CLI - Main entry point.

Developer diagnostics for the viewport engine. Each command is
implemented in its own module under cli/commands/.
"""

import logging

import click

from .commands import focus, inspect_graph


@click.group()
@click.version_option(package_name="flowview")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """flowview: graph viewport and exploration engine.

    \b
    Quick Start:
      flowview inspect graph.json --width 1280 --height 800
      flowview focus graph.json join_1 --mode upstream
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")


main.add_command(inspect_graph.inspect)
main.add_command(focus.focus)

if __name__ == "__main__":
    main()
