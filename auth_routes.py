from flask import Blueprint, jsonify, g
from auth import sign_up, sign_in, sign_out, admin_exists
from errors import ServiceError
from utils import add_log, log_action, login_required, request_data

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/api/auth/signup', methods=['POST'])
def api_signup():
    d = request_data()
    role = (d.get('role') or 'student').strip()
    try:
        ctx = sign_up(d.get('email'), d.get('password'), d.get('full_name'), role)
    except ServiceError as e:
        add_log(None, (d.get('email') or '').strip(), role, 'signup_rejected', {'reason': e.msg})
        raise
    log_action(ctx, 'signup', {'role': ctx.role})
    return jsonify({'ok': True, 'user': ctx.to_dict()}), 201


@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    d = request_data()
    ctx = sign_in(d.get('email'), d.get('password'))
    log_action(ctx, 'login')
    return jsonify({'ok': True, 'user': ctx.to_dict()})


@auth_bp.route('/api/auth/logout', methods=['POST'])
@login_required
def api_logout():
    log_action(g.auth, 'logout')
    sign_out()
    return jsonify({'ok': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
def api_me():
    ctx = g.auth
    return jsonify({'ok': True, 'authenticated': ctx.is_authenticated, 'user': ctx.to_dict() if ctx.is_authenticated else None})


@auth_bp.route('/api/auth/admin_exists', methods=['GET'])
def api_admin_exists():
    # usability hint for the signup form; sign_up enforces the rule itself
    return jsonify({'ok': True, 'admin_exists': admin_exists()})
