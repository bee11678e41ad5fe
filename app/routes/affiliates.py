"""
Affiliate routes — code resolution, click tracking, stats, payouts, lead counts.
"""
import logging
from flask import Blueprint, request, jsonify

from app.database import get_session
from app.errors import NotFoundError
from app.services.attribution import resolve_affiliate
from app.services.leads import count_leads
from app.services.payouts import record_payout
from app.services.stats import affiliate_summary
from app.services.tracking import record_click
from app.services.validation import parse_timestamp

logger = logging.getLogger('routes.affiliates')

bp = Blueprint('affiliates', __name__)


@bp.route('/api/affiliates/resolve/<path:code>')
def resolve(code):
    session = get_session()
    try:
        affiliate = resolve_affiliate(session, code)
        if affiliate is None:
            raise NotFoundError('Affiliate code', code)
        return jsonify({
            'id': affiliate.id,
            'referral_code': affiliate.referral_code,
            'custom_link': affiliate.custom_link,
            'is_active': bool(affiliate.is_active),
        })
    finally:
        session.close()


@bp.route('/api/track/click', methods=['POST'])
def track_click():
    data = request.get_json(silent=True) or {}
    return jsonify(record_click(data.get('code') or data.get('affiliateCode')))


@bp.route('/api/affiliates/<affiliate_id>/stats')
def stats(affiliate_id):
    start = parse_timestamp(request.args.get('start'), 'start', required=False)
    end = parse_timestamp(request.args.get('end'), 'end', required=False)
    return jsonify(affiliate_summary(affiliate_id, start=start, end=end))


@bp.route('/api/affiliates/<affiliate_id>/payouts', methods=['POST'])
def payout(affiliate_id):
    data = request.get_json(silent=True) or {}
    result = record_payout(affiliate_id, data.get('amount'), notes=data.get('notes'))
    return jsonify(result), 201


@bp.route('/api/leads/count')
def leads_count():
    """Canonical deduplicated lead count, optionally per affiliate and range."""
    affiliate_code = request.args.get('affiliate_code') or None
    start = parse_timestamp(request.args.get('start'), 'start', required=False)
    end = parse_timestamp(request.args.get('end'), 'end', required=False)
    session = get_session()
    try:
        affiliate = resolve_affiliate(session, affiliate_code)
        if affiliate is not None:
            affiliate_code = affiliate.referral_code
        count = count_leads(session, affiliate_code=affiliate_code, start=start, end=end)
    finally:
        session.close()
    return jsonify({'count': count, 'affiliate_code': affiliate_code})
