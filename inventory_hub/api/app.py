"""Flask application factory for the inventory API."""
from flask import Flask

from inventory_hub.db import db
from inventory_hub.logging_setup import get_logger
from inventory_hub.api.routes import inventory_bp
from inventory_hub.api.catalog_routes import catalog_bp

logger = get_logger('api')


def create_app(db_url=None, create_tables=False, testing=False):
    """Create the Flask application.

    Args:
        db_url: Optional database URL (defaults to configuration)
        create_tables: Create missing tables on startup
        testing: Put Flask in testing mode

    Returns:
        Flask application
    """
    app = Flask(__name__)
    app.config['TESTING'] = testing
    app.json.sort_keys = False

    db.initialize(db_url)
    if create_tables:
        db.create_all_tables()

    app.register_blueprint(inventory_bp)
    app.register_blueprint(catalog_bp)

    @app.teardown_appcontext
    def remove_session(exception=None):
        db.session.remove()

    logger.info("Inventory API ready")
    return app
