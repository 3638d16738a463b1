# fastfiles/main.py
"""Main entry point for the files CLI application."""

from fastfiles.cli.interface import main_cli


def entrypoint():
    """Function to be called by the script defined in pyproject.toml."""
    main_cli(prog_name="files")

if __name__ == '__main__':
    entrypoint()
