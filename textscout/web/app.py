"""Flask application factory for the TextScout web API."""

import logging
import os
from pathlib import Path
from typing import Optional

from flask import Flask

from ..config import TextScoutConfig, setup_logging
from ..memory import RomFileProvider
from ..session import TextSession

SESSION_KEY = "textscout.session"


def create_app(
    config: Optional[dict] = None,
    session: Optional[TextSession] = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Optional configuration dictionary.
        session: Session to serve; one is created from ROM_PATH and
            TABLE_PATH when not given.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    # Default configuration
    app.config.update({
        "SECRET_KEY": os.environ.get("SECRET_KEY", "dev-key-change-in-production"),
        "UPLOAD_FOLDER": os.environ.get("UPLOAD_FOLDER", "roms_input"),
        "ROM_PATH": os.environ.get("TEXTSCOUT_ROM"),
        "TABLE_PATH": os.environ.get("TEXTSCOUT_TABLE"),
        "MAX_CONTENT_LENGTH": 16 * 1024 * 1024,  # 16 MB max file size
        "ALLOWED_EXTENSIONS": {"nes", "fds", "sfc", "smc", "gb", "gbc", "gba", "bin"},
    })

    # Override with custom config if provided
    if config:
        app.config.update(config)

    debug = app.config.get("DEBUG", False)
    if not app.config.get("TESTING"):
        setup_logging(debug=debug)

    logger = logging.getLogger(__name__)
    logger.info("Initializing TextScout web API")

    upload_folder = Path(app.config["UPLOAD_FOLDER"])
    if upload_folder.is_absolute():
        upload_folder.mkdir(parents=True, exist_ok=True)

    if session is None:
        provider = RomFileProvider(app.config["ROM_PATH"]) if app.config["ROM_PATH"] else None
        session = TextSession(provider, TextScoutConfig())
        if app.config["TABLE_PATH"]:
            session.load_table(app.config["TABLE_PATH"])
    app.extensions[SESSION_KEY] = session

    from .routes import api_bp
    app.register_blueprint(api_bp, url_prefix="/api")

    return app
