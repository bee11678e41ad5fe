"""
Appointment routes — intake, outcome updates, reconciliation trigger.
"""
import logging
from flask import Blueprint, request, jsonify

from app.services.appointments import create_appointment
from app.services.jobs import enqueue_reconciliation, run_reconciliation
from app.services.ledger import update_outcome

logger = logging.getLogger('routes.appointments')

bp = Blueprint('appointments', __name__)


@bp.route('/api/appointments', methods=['POST'])
def create():
    data = request.get_json(silent=True) or {}
    appointment = create_appointment(data)
    return jsonify(appointment), 201


@bp.route('/api/appointments/<appointment_id>/outcome', methods=['PUT'])
def outcome(appointment_id):
    """Record a call outcome. Optional closerId scopes the update to that closer."""
    data = request.get_json(silent=True) or {}
    result = update_outcome(
        appointment_id,
        data.get('outcome'),
        sale_value=data.get('saleValue'),
        notes=data.get('notes'),
        recording_link=data.get('recordingLink'),
        closer_id=data.get('closerId'),
    )
    return jsonify(result)


@bp.route('/api/appointments/reconcile', methods=['POST'])
def reconcile():
    """Assign waiting appointments. Queued on RQ unless ?sync=1."""
    if request.args.get('sync') == '1':
        return jsonify(run_reconciliation())
    job_id = enqueue_reconciliation()
    return jsonify({'job_id': job_id, 'status': 'queued'}), 202
