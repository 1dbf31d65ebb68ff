from flask import Blueprint, request, jsonify, g, current_app
from models import CATEGORIES
from store import Store
from results import list_results, result_detail, student_dashboard, result_row
from exam_sessions import get_registry
from errors import NotFound, SubmissionFailed, ValidationFailed
from utils import log_action, student_required, request_data

student_bp = Blueprint('student', __name__)


@student_bp.route('/api/student/dashboard', methods=['GET'])
@student_required
def api_student_dashboard():
    category = request.args.get('category')
    if category and category not in CATEGORIES:
        raise ValidationFailed(f'Unknown category: {category!r}', msg='bad_category')
    return jsonify({'ok': True, **student_dashboard(Store(g.auth), category or None)})


@student_bp.route('/api/student/results', methods=['GET'])
@student_required
def api_student_results():
    store = Store(g.auth)
    rows = list_results(store)
    return jsonify({'ok': True, 'results': [result_row(store, r) for r in rows]})


@student_bp.route('/api/student/results/<int:result_id>', methods=['GET'])
@student_required
def api_student_result(result_id):
    return jsonify({'ok': True, 'result': result_detail(Store(g.auth), result_id)})


# ---- exam taking ---------------------------------------------------------

def _live_session(exam_id):
    session = get_registry().get(g.auth, exam_id)
    if session is None:
        raise NotFound('No exam in progress', msg='no_session', redirect_to='/student')
    return session


def _finished_payload(exam_id):
    """Snapshot of a session that was already submitted, e.g. by the background ticker."""
    return get_registry().finished(g.auth, exam_id)


def _tick(session):
    """Catch the countdown up to the wall clock; may auto-submit."""
    try:
        fired = session.tick()
    except SubmissionFailed:
        log_action(g.auth, 'exam_auto_submit_failed', {'exam_id': session.exam_id, 'error': session.last_error})
        return
    if fired and session.attempt_id is not None:
        log_action(g.auth, 'exam_auto_submitted', {'exam_id': session.exam_id, 'result_id': session.attempt_id})


@student_bp.route('/api/student/exams/<int:exam_id>/start', methods=['POST'])
@student_required
def api_start_exam(exam_id):
    session, created = get_registry().start(g.auth, exam_id)
    if created:
        log_action(g.auth, 'exam_started', {'exam_id': exam_id, 'num_questions': len(session.questions)})
    else:
        _tick(session)
    return jsonify({'ok': True, 'resumed': not created, 'session': session.snapshot()})


@student_bp.route('/api/student/exams/<int:exam_id>/session', methods=['GET'])
@student_required
def api_exam_session(exam_id):
    finished = None if get_registry().get(g.auth, exam_id) else _finished_payload(exam_id)
    if finished:
        return jsonify({'ok': True, 'session': finished})
    session = _live_session(exam_id)
    _tick(session)
    return jsonify({'ok': True, 'session': session.snapshot()})


@student_bp.route('/api/student/exams/<int:exam_id>/session', methods=['DELETE'])
@student_required
def api_abandon_exam(exam_id):
    if not get_registry().discard(g.auth, exam_id):
        raise NotFound('No exam in progress', msg='no_session', redirect_to='/student')
    log_action(g.auth, 'exam_abandoned', {'exam_id': exam_id})
    return jsonify({'ok': True})


@student_bp.route('/api/student/exams/<int:exam_id>/select', methods=['POST'])
@student_required
def api_select_answer(exam_id):
    session = _live_session(exam_id)
    _tick(session)
    d = request_data()
    try:
        question_id = int(d.get('question_id'))
    except (TypeError, ValueError):
        raise ValidationFailed('question_id is required', msg='bad_question')
    option = (d.get('option') or '').strip().upper()
    session.select(question_id, option)
    return jsonify({'ok': True, 'session': session.snapshot()})


@student_bp.route('/api/student/exams/<int:exam_id>/goto', methods=['POST'])
@student_required
def api_goto_question(exam_id):
    session = _live_session(exam_id)
    _tick(session)
    index = request_data().get('index')
    try:
        index = int(index)
    except (TypeError, ValueError):
        index = None  # ignored like any out-of-range request
    session.go_to(index)
    return jsonify({'ok': True, 'session': session.snapshot()})


@student_bp.route('/api/student/exams/<int:exam_id>/submit', methods=['POST'])
@student_required
def api_submit_exam(exam_id):
    finished = None if get_registry().get(g.auth, exam_id) else _finished_payload(exam_id)
    if finished:
        return jsonify({
            'ok': True,
            'result_id': finished['attempt_id'],
            'auto_submitted': finished['auto_submitted'],
            'redirect': f'/student/result/{finished["attempt_id"]}',
        })
    session = _live_session(exam_id)
    _tick(session)
    if session.attempt_id is None:
        try:
            attempt_id = session.submit()
        except SubmissionFailed:
            current_app.logger.warning('submission failed for exam %s: %s', exam_id, session.last_error)
            log_action(g.auth, 'exam_submit_failed', {'exam_id': exam_id, 'error': session.last_error})
            raise
        if attempt_id is None:
            # another submission owns the session right now
            return jsonify({'ok': False, 'msg': 'submission_in_progress', 'session': session.snapshot()}), 409
        log_action(g.auth, 'exam_submitted', {'exam_id': exam_id, 'result_id': attempt_id})
    return jsonify({
        'ok': True,
        'result_id': session.attempt_id,
        'auto_submitted': session.auto_submitted,
        'redirect': f'/student/result/{session.attempt_id}',
    })
