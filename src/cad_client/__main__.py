"""Entry point for running cad_client as a module.

This allows the package to be executed as:
    python -m cad_client
"""

from cad_client.cli.main import cli

if __name__ == "__main__":
    cli()
