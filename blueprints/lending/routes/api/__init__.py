"""
Lending API routes package.
Split into smaller modules by entity for maintainability.
"""

from flask import Blueprint

# Create the API blueprint
api_bp = Blueprint('api', __name__)

# Import and register routes from submodules
from blueprints.lending.routes.api import products
from blueprints.lending.routes.api import reservations
from blueprints.lending.routes.api import maintenance
from blueprints.lending.routes.api import credits
from blueprints.lending.routes.api import audit
from blueprints.lending.routes.api import users

# Register all route functions on the blueprint
products.register_routes(api_bp)
reservations.register_routes(api_bp)
maintenance.register_routes(api_bp)
credits.register_routes(api_bp)
audit.register_routes(api_bp)
users.register_routes(api_bp)
