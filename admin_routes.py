from flask import Blueprint, request, jsonify, g
from models import Log, ExamResult, User
from store import Store
from authoring import (
    validate_exam_form, create_exam, update_exam, delete_exam, set_active,
    exam_detail, list_exams, dashboard_stats,
)
from utils import log_action, admin_required, request_data

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/api/admin/stats', methods=['GET'])
@admin_required
def api_admin_stats():
    return jsonify({'ok': True, 'stats': dashboard_stats(Store(g.auth))})


@admin_bp.route('/api/admin/exams', methods=['GET'])
@admin_required
def api_list_exams():
    return jsonify({'ok': True, 'exams': list_exams(Store(g.auth))})


@admin_bp.route('/api/admin/exams/<int:exam_id>', methods=['GET'])
@admin_required
def api_get_exam(exam_id):
    return jsonify({'ok': True, 'exam': exam_detail(Store(g.auth), exam_id)})


@admin_bp.route('/api/admin/exams', methods=['POST'])
@admin_required
def api_create_exam():
    form = validate_exam_form(request_data())
    store = Store(g.auth)
    exam = create_exam(store, form)
    log_action(g.auth, 'create_exam', {'exam_id': exam.id, 'num_questions': len(form['questions'])})
    return jsonify({'ok': True, 'exam': exam_detail(store, exam.id)}), 201


@admin_bp.route('/api/admin/exams/<int:exam_id>', methods=['PUT'])
@admin_required
def api_update_exam(exam_id):
    form = validate_exam_form(request_data())
    store = Store(g.auth)
    update_exam(store, exam_id, form)
    log_action(g.auth, 'update_exam', {'exam_id': exam_id, 'num_questions': len(form['questions'])})
    return jsonify({'ok': True, 'exam': exam_detail(store, exam_id)})


@admin_bp.route('/api/admin/exams/<int:exam_id>', methods=['DELETE'])
@admin_required
def api_delete_exam(exam_id):
    delete_exam(Store(g.auth), exam_id)
    log_action(g.auth, 'delete_exam', {'exam_id': exam_id})
    return jsonify({'ok': True})


@admin_bp.route('/api/admin/exams/<int:exam_id>/toggle', methods=['POST'])
@admin_required
def api_toggle_exam(exam_id):
    d = request_data()
    exam = set_active(Store(g.auth), exam_id, d.get('is_active'))
    log_action(g.auth, 'activate_exam' if exam.is_active else 'deactivate_exam', {'exam_id': exam_id})
    return jsonify({'ok': True, 'exam': {'id': exam.id, 'is_active': exam.is_active}})


@admin_bp.route('/api/admin/results', methods=['GET'])
@admin_required
def api_all_results():
    store = Store(g.auth)
    exam_id = request.args.get('exam_id', type=int)
    filters = {'exam_id': exam_id} if exam_id else {}
    out = []
    for r in store.select(ExamResult, order_by=ExamResult.completed_at.desc(), **filters):
        row = r.to_dict()
        row['exam_title'] = r.exam.title
        student = store.get(User, r.user_id)
        row['student_email'] = student.email if student else None
        out.append(row)
    return jsonify({'ok': True, 'results': out})


@admin_bp.route('/api/admin/logs', methods=['GET'])
@admin_required
def api_view_logs():
    q = Log.query
    etype = request.args.get('event_type')
    uid = request.args.get('user_id', type=int)
    if etype:
        q = q.filter_by(event_type=etype)
    if uid:
        q = q.filter_by(who_user_id=uid)
    logs = q.order_by(Log.created_at.desc(), Log.id.desc()).limit(2000).all()
    return jsonify({'ok': True, 'logs': [l.to_dict() for l in logs]})
