"""
Quiz routes — session start, answers, completion.
"""
import logging
from flask import Blueprint, request, jsonify

from app.services.quiz import complete_session, record_answer, start_session

logger = logging.getLogger('routes.quiz')

bp = Blueprint('quiz', __name__)


@bp.route('/api/quiz/sessions', methods=['POST'])
def start():
    data = request.get_json(silent=True) or {}
    quiz_session = start_session(
        quiz_type=data.get('quizType') or 'default',
        affiliate_code=data.get('affiliateCode'),
    )
    return jsonify(quiz_session), 201


@bp.route('/api/quiz/sessions/<session_id>/answers', methods=['PUT'])
def answer(session_id):
    data = request.get_json(silent=True) or {}
    return jsonify(record_answer(session_id, data.get('questionId'), data.get('value')))


@bp.route('/api/quiz/sessions/<session_id>/complete', methods=['POST'])
def complete(session_id):
    return jsonify(complete_session(session_id))
