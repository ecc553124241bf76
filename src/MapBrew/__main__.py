"""Entrypoint for `python -m MapBrew`.

Usage:
  python -m MapBrew -i albedo.png -o ./maps
"""
import logging

logger = logging.getLogger("map_pipeline")


def _run_cli():
    from .cli import main as cli_main
    logger.debug("Dispatching to CLI entrypoint.")
    cli_main()


if __name__ == "__main__":
    _run_cli()
