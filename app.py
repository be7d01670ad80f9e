import os
import logging
from datetime import datetime
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Flask specific imports ---
from flask import Flask, g, request
from flask_cors import CORS

# --- Import our configuration and the catalog adapter ---
from config import Config
from tunebox.auth import init_auth
from tunebox.database.db_manager import initialize_database
from tunebox.domain.catalog import TrackSourceAdapter
from tunebox.errors import register_error_handlers
from tunebox.interfaces.http.routes import (
    songs_bp,
    artist_bp,
    favorite_bp,
    playlist_bp,
    health_bp,
)
from tunebox.observability import configure_structured_logging, metrics_blueprint


logger = logging.getLogger(__name__)


def configure_logging(log_dir: str) -> str:
    """
    Configure root logging with:
      - FileHandler (INFO+) to a new file per run: log-YYYY-MM-DD-HH-MM-SS
      - StreamHandler (WARNING+) to console when ENABLE_CONSOLE_LOGS is set
      - Werkzeug/Flask loggers routed to root

    Returns the path to the created log file.
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    log_path = os.path.join(log_dir, f"log-{timestamp}")

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Preserve structured handlers; remove existing FileHandlers to avoid duplicates
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.FileHandler)]

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if Config.ENABLE_CONSOLE_LOGS:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    for name in ("werkzeug", "flask.app"):
        _l = logging.getLogger(name)
        _l.setLevel(logging.INFO)
        _l.handlers = []
        _l.propagate = True

    return log_path


def create_app(config_overrides=None, track_source=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_structured_logging(app)
    register_error_handlers(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid4().hex

    @app.after_request
    def _inject_request_id(response):
        if getattr(g, 'request_id', None):
            response.headers.setdefault('X-Request-ID', g.request_id)
        return response

    allowed_origins = sorted({
        origin.strip()
        for origin in app.config['CORS_ALLOWED_ORIGINS']
        if origin and origin.strip() and origin.strip() != "*"
    })
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}}, supports_credentials=True)

    csp_policy = app.config.get('CONTENT_SECURITY_POLICY')
    if csp_policy:

        @app.after_request
        def _apply_csp(response):
            response.headers.setdefault('Content-Security-Policy', csp_policy)
            return response

    # Initialize database and session auth
    initialize_database(app)
    init_auth(app)

    # Catalog adapter shared by the songs/library routes and Spotify linking
    app.extensions['track_source'] = track_source or TrackSourceAdapter(
        client_id=app.config.get('SPOTIFY_CLIENT_ID'),
        client_secret=app.config.get('SPOTIFY_CLIENT_SECRET'),
        redirect_uri=app.config.get('SPOTIFY_REDIRECT_URI'),
        result_limit=app.config.get('UPSTREAM_RESULT_LIMIT'),
        max_retries=app.config.get('UPSTREAM_MAX_RETRIES'),
        base_delay=app.config.get('UPSTREAM_RETRY_BASE_DELAY_SECONDS'),
        expiry_buffer=app.config.get('TOKEN_EXPIRY_BUFFER_SECONDS'),
    )
    app.logger.info("Songs served from the %s source", app.config.get('SONGS_SOURCE'))

    # --- Register Blueprints ---
    app.register_blueprint(songs_bp)
    app.register_blueprint(artist_bp)
    app.register_blueprint(favorite_bp)
    app.register_blueprint(playlist_bp)
    app.register_blueprint(metrics_blueprint)
    app.register_blueprint(health_bp)

    return app


if __name__ == '__main__':
    # Configure logging:
    # - In debug with reloader: only in the child process to avoid duplicate files
    # - In non-debug: always configure here
    debug_mode = bool(Config.DEBUG)
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'tunebox', 'log')
    if not debug_mode or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        log_file_path = configure_logging(log_dir)
        logger.info("File logging initialized at %s", log_file_path)

    if not Config.SPOTIFY_CLIENT_ID or not Config.SPOTIFY_CLIENT_SECRET:
        logger.warning("Spotify client ID or secret not found in environment variables.")
        logger.warning("Songs and library feeds will be served from the fallback catalogue.")

    app = create_app()
    app.run(debug=debug_mode, host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
