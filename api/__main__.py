"""
Development server: `python -m api [--config testing] [--port 8000]`.
In production run `api:create_app()` under a WSGI server (gunicorn/uwsgi).
"""
import os

import click

from . import create_app


@click.command()
@click.option("--config", "config_name", default=None, help="development, testing or production (default: APP_ENV).")
@click.option("--host", default=lambda: os.getenv("FLASK_RUN_HOST", "0.0.0.0"), show_default="FLASK_RUN_HOST or 0.0.0.0")
@click.option("--port", default=lambda: int(os.getenv("FLASK_RUN_PORT", "8000")), type=int, show_default="FLASK_RUN_PORT or 8000")
@click.option("--debug/--no-debug", default=None, help="Defaults to the selected config's DEBUG flag.")
def main(config_name, host, port, debug):
    app = create_app(config_name)
    if debug is None:
        debug = bool(app.config.get("DEBUG", False))
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
