"""
Settings routes.
"""
import logging
from flask import Blueprint, request, jsonify

from app.services.settings import get_settings, update_settings

logger = logging.getLogger('routes.settings')

bp = Blueprint('settings', __name__)


@bp.route('/api/settings', methods=['GET'])
def read():
    return jsonify(get_settings())


@bp.route('/api/settings', methods=['POST'])
def write():
    data = request.get_json(silent=True) or {}
    return jsonify(update_settings(data))
