"""Allow ``python -m lqa_batch``."""

from lqa_batch.cli import app

if __name__ == "__main__":
    app()
