from .routes import inventory_bp
from .catalog_routes import catalog_bp
from .app import create_app

__all__ = ['inventory_bp', 'catalog_bp', 'create_app']
