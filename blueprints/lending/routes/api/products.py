"""
Catalog API routes: sections, products, availability, calendar and quotes.
"""

from flask import request
from flask_login import login_required

from models.maintenance import get_active_maintenance, get_scheduled_maintenances
from models.movement import get_product_movements
from models.pricing import quote
from models.product import (
    get_all_sections, create_section, get_section_by_id,
    get_all_products, get_product_or_404, create_product, update_product
)
from models.reservation import check_availability, get_product_availability
from utils.api_response import api_success, api_error
from utils.audit import audit_action
from utils.datetime_helpers import get_today
from utils.decorators import admin_required
from utils.messages import get_message
from utils.validators import parse_date


def register_routes(bp):
    """Register catalog API routes on the blueprint."""

    # ============================================================================
    # SECTIONS
    # ============================================================================

    @bp.route('/sections')
    @login_required
    def list_sections():
        """All active sections with their weekday rules."""
        return api_success(data=get_all_sections())

    @bp.route('/sections', methods=['POST'])
    @login_required
    @admin_required
    @audit_action('CREATE', 'section')
    def create_section_route():
        """
        Create a section.

        Request body:
            name: Unique name
            description: Optional
            allowed_days_out: ISO weekday codes (list or CSV); empty = any day
            allowed_days_in: ISO weekday codes (list or CSV); empty = any day
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        section_id = create_section(
            name=data.get('name'),
            description=data.get('description'),
            allowed_days_out=data.get('allowed_days_out'),
            allowed_days_in=data.get('allowed_days_in')
        )
        return api_success(data=get_section_by_id(section_id),
                           message=get_message('section_created'), status=201)

    # ============================================================================
    # PRODUCTS
    # ============================================================================

    @bp.route('/products')
    @login_required
    def list_products():
        """
        Products with section rules.

        Query params:
            section_id: Filter by section
            status: Filter by status
        """
        products = get_all_products(
            section_id=request.args.get('section_id', type=int),
            status=request.args.get('status')
        )
        return api_success(data=products)

    @bp.route('/products/<int:product_id>')
    @login_required
    def product_detail(product_id):
        """Product with section rules and its current and upcoming maintenance."""
        product = get_product_or_404(product_id)
        product['active_maintenance'] = get_active_maintenance(product_id)
        product['scheduled_maintenances'] = get_scheduled_maintenances(product_id)
        return api_success(data=product)

    @bp.route('/products', methods=['POST'])
    @login_required
    @admin_required
    @audit_action('CREATE', 'product')
    def create_product_route():
        """
        Create a product.

        Request body:
            name, section_id, min_duration, max_duration (0 = unbounded),
            price_credits (null hides the price), credit_period (DAY|WEEK),
            reference, description
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        product_id = create_product(
            name=data.get('name'),
            section_id=data.get('section_id'),
            min_duration=data.get('min_duration', 1),
            max_duration=data.get('max_duration', 0),
            price_credits=data.get('price_credits'),
            credit_period=data.get('credit_period', 'DAY'),
            reference=data.get('reference'),
            description=data.get('description')
        )
        return api_success(data=get_product_or_404(product_id),
                           message=get_message('product_created'), status=201)

    @bp.route('/products/<int:product_id>', methods=['PATCH'])
    @login_required
    @admin_required
    @audit_action('UPDATE', 'product', entity_id_param='product_id')
    def update_product_route(product_id):
        """Update product fields (partial)."""
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        fields = {key: value for key, value in data.items() if key != 'product_id'}
        update_product(product_id, **fields)
        return api_success(data=get_product_or_404(product_id),
                           message=get_message('product_updated'))

    # ============================================================================
    # AVAILABILITY
    # ============================================================================

    @bp.route('/products/<int:product_id>/availability')
    @login_required
    def product_availability(product_id):
        """
        Is the product free for an interval?

        Query params:
            start: First day YYYY-MM-DD
            end: Last day YYYY-MM-DD (defaults to start)
        """
        start = request.args.get('start')
        end = request.args.get('end') or start
        if not start:
            return api_error(get_message('date_required', field='start'), code='VALIDATION_ERROR')

        return api_success(data=check_availability(product_id, start, end))

    @bp.route('/products/<int:product_id>/calendar')
    @login_required
    def product_calendar(product_id):
        """
        Monthly day-by-day calendar.

        Query params:
            month: YYYY-MM (defaults to current month)
        """
        month = request.args.get('month') or get_today().strftime('%Y-%m')
        return api_success(data=get_product_availability(product_id, month))

    @bp.route('/products/<int:product_id>/quote')
    @login_required
    def product_quote(product_id):
        """
        Price of an interval.

        Query params:
            start: First day YYYY-MM-DD
            end: Last day YYYY-MM-DD
        """
        product = get_product_or_404(product_id)
        start = parse_date(request.args.get('start'), 'start')
        end = parse_date(request.args.get('end') or request.args.get('start'), 'end')
        return api_success(data=quote(product, start, end))

    @bp.route('/products/<int:product_id>/movements')
    @login_required
    @admin_required
    def product_movements(product_id):
        """Checkout and return history of a product, newest first."""
        get_product_or_404(product_id)
        limit = min(request.args.get('limit', 50, type=int), 200)
        return api_success(data=get_product_movements(product_id, limit=limit))
