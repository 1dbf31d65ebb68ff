from functools import wraps
from flask import g, jsonify, request
from models import Log, db


def add_log(who_id, username, role, event_type, meta=None):
    """Helper function to add log entries"""
    entry = Log(who_user_id=who_id, username=username, role=role, event_type=event_type, meta=meta or {})
    db.session.add(entry)
    db.session.commit()


def log_action(ctx, event_type, meta=None):
    add_log(ctx.user_id, ctx.email, ctx.role, event_type, meta)


def _current_auth():
    return getattr(g, 'auth', None)


def login_required(fn):
    """Decorator to protect routes that need any signed-in account"""
    @wraps(fn)
    def wrapper(*a, **kw):
        ctx = _current_auth()
        if ctx is None or not ctx.is_authenticated:
            return jsonify({'ok': False, 'msg': 'not_logged_in'}), 401
        return fn(*a, **kw)
    return wrapper


def role_required(role):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*a, **kw):
            ctx = _current_auth()
            if ctx is None or not ctx.is_authenticated:
                return jsonify({'ok': False, 'msg': 'not_logged_in'}), 401
            if ctx.role != role:
                return jsonify({'ok': False, 'msg': 'forbidden'}), 403
            return fn(*a, **kw)
        return wrapper
    return decorator


admin_required = role_required('admin')
student_required = role_required('student')


def request_data():
    """JSON body when there is one, otherwise the submitted form."""
    return request.get_json(silent=True) or request.form or {}
