"""Allow `python -m bitmore`."""

from bitmore.cli import app

if __name__ == "__main__":
    app()
