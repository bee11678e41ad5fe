"""
Commission routes — release sweep, force-release, lifecycle status.
"""
import logging
from flask import Blueprint, request, jsonify

from app.services.ledger import force_release, release_held_commissions
from app.services.payouts import get_commission_status
from app.services.validation import parse_timestamp

logger = logging.getLogger('routes.commissions')

bp = Blueprint('commissions', __name__)


@bp.route('/api/commissions/release', methods=['POST'])
def release():
    """Run the held → available sweep. Body may carry `now` to replay a sweep."""
    data = request.get_json(silent=True) or {}
    now = parse_timestamp(data.get('now'), 'now', required=False)
    return jsonify(release_held_commissions(now=now))


@bp.route('/api/commissions/<conversion_id>/force-release', methods=['POST'])
def force(conversion_id):
    return jsonify(force_release(conversion_id))


@bp.route('/api/commissions/status')
def status():
    return jsonify(get_commission_status())
