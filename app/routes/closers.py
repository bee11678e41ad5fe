"""
Closer routes — per-closer counters.
"""
import logging
from flask import Blueprint, jsonify

from app.services.stats import closer_summary

logger = logging.getLogger('routes.closers')

bp = Blueprint('closers', __name__)


@bp.route('/api/closers/<closer_id>/stats')
def stats(closer_id):
    return jsonify(closer_summary(closer_id))
