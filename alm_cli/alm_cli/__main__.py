"""Entry point for `python -m alm_cli` and `alm` console script."""

from __future__ import annotations

from alm_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
