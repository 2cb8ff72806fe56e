"""
Audit log API routes (admin only).
"""

from flask import current_app, request
from flask_login import login_required

from models.audit_log import get_audit_logs
from utils.api_response import api_success
from utils.decorators import admin_required


def register_routes(bp):
    """Register audit API routes on the blueprint."""

    @bp.route('/audit-log')
    @login_required
    @admin_required
    def list_audit_log():
        """
        Audit entries, newest first.

        Query params:
            entity_type, entity_id, action, user_id: Optional filters
            page: Page number (default 1)
        """
        per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
        page = max(request.args.get('page', 1, type=int), 1)

        entries = get_audit_logs(
            user_id=request.args.get('user_id', type=int),
            action=request.args.get('action'),
            entity_type=request.args.get('entity_type'),
            entity_id=request.args.get('entity_id', type=int),
            limit=per_page,
            offset=(page - 1) * per_page
        )
        return api_success(data=entries, page=page, per_page=per_page)
