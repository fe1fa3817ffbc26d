"""
Entrypoint for running the API in development.
In production run create_app() under a WSGI server (gunicorn/uwsgi).
"""
import os
import sys

from utils.exceptions import ConfigurationError
from . import create_app

if __name__ == "__main__":
    try:
        app = create_app()
    except ConfigurationError as exc:
        sys.exit(f"Refusing to start: {exc}")
    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("PORT", os.getenv("FLASK_RUN_PORT", "5000")))
    debug = bool(os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", True))).lower() in ("1", "true", "yes"))
    app.run(host=host, port=port, debug=debug)
