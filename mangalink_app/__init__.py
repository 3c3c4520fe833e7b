"""
================================================================================
MangaLink - Application Factory
================================================================================
Cross-provider manga reading: one title, many providers, one reading position.
================================================================================
"""

import os
import time
import uuid
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request


def create_app(config=None, registry=None, progress_store=None, init_db: bool = True):
    """
    Create and configure an instance of the Flask application.

    Args:
        config: ReaderConfig (default: from MANGALINK_* environment)
        registry: ProviderRegistry (default: global registry, catalogs from
            MANGALINK_CATALOG_DIR)
        progress_store: ProgressStore (default: SQL store on DATABASE_URL)
        init_db: Create tables for the SQL store
    """
    # Load environment variables FIRST so every component sees them
    load_dotenv()

    from .config import ReaderConfig, set_config
    from .log import debug_log_event, drain_messages, init_logging, log

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        HOST=os.environ.get('HOST', '127.0.0.1'),
        PORT=int(os.environ.get('PORT', 5000)),
        DEBUG=os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1', 'yes'),
    )
    # Keep provider merge order in JSON objects
    app.json.sort_keys = False

    init_logging(to_file=os.environ.get('MANGALINK_LOG_TO_FILE', 'true').lower() in ('true', '1', 'yes'))

    # =============================================================================
    # READER PIPELINE
    # =============================================================================
    config = config or ReaderConfig.from_env()
    set_config(config)

    from sources import get_provider_registry, set_provider_registry
    if registry is None:
        registry = get_provider_registry(config.catalog_dir)
    else:
        set_provider_registry(registry)

    if progress_store is None:
        from .database import init_database
        from .progress_store import SqlProgressStore
        if init_db:
            init_database()
        progress_store = SqlProgressStore()

    from .services import ReaderService, set_reader_service
    set_reader_service(ReaderService(registry, store=progress_store, config=config))

    # =============================================================================
    # REQUEST LOGGING
    # =============================================================================
    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def debug_request_log(response):
        duration_ms: Optional[int] = None
        start_time = getattr(g, 'request_start', None)
        if start_time:
            duration_ms = int((time.time() - start_time) * 1000)
        debug_log_event({
            'event': 'request',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'query': request.query_string.decode('utf-8', errors='ignore'),
            'status': response.status_code,
            'duration_ms': duration_ms,
        })
        return response

    @app.teardown_request
    def debug_exception_log(error=None):
        if not error:
            return
        debug_log_event({
            'event': 'exception',
            'request_id': getattr(g, 'request_id', None),
            'path': request.path,
            'error_type': error.__class__.__name__,
            'error': str(error),
        })

    # =============================================================================
    # BLUEPRINTS & ROUTES
    # =============================================================================
    from .routes.progress_api import progress_bp
    from .routes.search_api import search_bp
    from .routes.sources_api import sources_bp

    app.register_blueprint(search_bp)
    app.register_blueprint(sources_bp)
    app.register_blueprint(progress_bp)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok', 'providers': len(registry)})

    @app.route('/api/logs')
    def get_logs():
        """Get pending log messages."""
        return jsonify({'logs': drain_messages()})

    log(f"MangaLink ready: {len(registry)} providers")
    return app
