"""Entry point for `python -m teams_console`."""

from .commands import app

if __name__ == "__main__":
    app()
