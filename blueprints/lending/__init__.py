"""
Lending blueprint initialization.

Assembles the JSON API route modules into the lending blueprint:
- routes/api/products.py - Sections, products, availability, quotes
- routes/api/reservations.py - Booking and lifecycle transitions
- routes/api/maintenance.py - Maintenance windows and cascade preview
- routes/api/credits.py - Balances and admin adjustments
"""

from flask import Blueprint

# Create main lending blueprint
lending_bp = Blueprint('lending', __name__)

# API routes (all REST endpoints)
from blueprints.lending.routes.api import api_bp
lending_bp.register_blueprint(api_bp, url_prefix='/api')
