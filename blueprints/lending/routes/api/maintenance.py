"""
Maintenance API routes: windows, cascade preview, end and cancel.
"""

from flask import request
from flask_login import login_required, current_user

from models.maintenance import (
    get_product_maintenances,
    get_maintenance_or_404,
    end_maintenance,
    cancel_scheduled_maintenance,
)
from models.maintenance_cascade import create_maintenance, preview_maintenance, update_maintenance
from models.product import get_product_or_404
from utils.api_response import api_success, api_error
from utils.decorators import admin_required
from utils.messages import get_message


def register_routes(bp):
    """Register maintenance API routes on the blueprint."""

    @bp.route('/products/<int:product_id>/maintenance')
    @login_required
    def list_product_maintenance(product_id):
        """
        Maintenances of a product with derived status.

        Query params:
            include_ended: 'false' hides ended windows
        """
        get_product_or_404(product_id)
        include_ended = request.args.get('include_ended', 'true').lower() != 'false'
        return api_success(data=get_product_maintenances(product_id, include_ended=include_ended))

    @bp.route('/products/<int:product_id>/maintenance/preview', methods=['POST'])
    @login_required
    @admin_required
    def preview_maintenance_route(product_id):
        """
        Reservations a new maintenance would cancel, without writing anything.

        Request body:
            start_date: First day YYYY-MM-DD
            end_date: Last day YYYY-MM-DD (null = indefinite)
        """
        data = request.get_json(silent=True)
        if not data or not data.get('start_date'):
            return api_error(get_message('date_required', field='start_date'), code='VALIDATION_ERROR')

        return api_success(data=preview_maintenance(product_id, data['start_date'], data.get('end_date')))

    @bp.route('/products/<int:product_id>/maintenance', methods=['POST'])
    @login_required
    @admin_required
    def create_maintenance_route(product_id):
        """
        Block a product and cancel/refund the reservations in the window.

        Request body:
            start_date: First day YYYY-MM-DD
            end_date: Last day YYYY-MM-DD (null = indefinite)
            reason: Free text
        """
        data = request.get_json(silent=True)
        if not data or not data.get('start_date'):
            return api_error(get_message('date_required', field='start_date'), code='VALIDATION_ERROR')

        result = create_maintenance(
            product_id,
            data['start_date'],
            data.get('end_date'),
            data.get('reason'),
            current_user.username
        )
        return api_success(
            data=result,
            message=get_message('maintenance_created', count=result['cancelled_reservations_count']),
            status=201
        )

    @bp.route('/maintenance/<int:maintenance_id>')
    @login_required
    def maintenance_detail(maintenance_id):
        """Maintenance with derived status."""
        return api_success(data=get_maintenance_or_404(maintenance_id))

    @bp.route('/maintenance/<int:maintenance_id>', methods=['PATCH'])
    @login_required
    @admin_required
    def update_maintenance_route(maintenance_id):
        """
        Change end date or reason.

        Request body:
            end_date: New last day; null makes the window indefinite
            reason: New reason
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        fields = {key: data[key] for key in ('end_date', 'reason') if key in data}
        maintenance = update_maintenance(maintenance_id, current_user.username, **fields)
        return api_success(data=maintenance, message=get_message('maintenance_updated'))

    @bp.route('/maintenance/<int:maintenance_id>/end', methods=['POST'])
    @login_required
    @admin_required
    def end_maintenance_route(maintenance_id):
        """End a maintenance now and release the product."""
        maintenance = end_maintenance(maintenance_id, current_user.username)
        return api_success(data=maintenance, message=get_message('maintenance_ended'))

    @bp.route('/maintenance/<int:maintenance_id>', methods=['DELETE'])
    @login_required
    @admin_required
    def delete_maintenance_route(maintenance_id):
        """Remove a maintenance that has not started."""
        cancel_scheduled_maintenance(maintenance_id, current_user.username)
        return api_success(message=get_message('maintenance_deleted'))
