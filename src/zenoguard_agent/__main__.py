"""Allow ``python -m zenoguard_agent``."""

from .cli import app

if __name__ == "__main__":
    app()
