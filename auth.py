"""
Accounts and the per-request auth context.

``resolve_session`` runs before every request and rebuilds ``g.auth`` from the
signed cookie session. ``sign_in`` and ``sign_out`` are the only other writers
of ``g.auth`` and the only places that touch the cookie.
"""

import re
from collections import namedtuple

from flask import g, session, current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

from models import db, User, UserRole, ROLES
from store import Store
from errors import AdminExists, AuthFailed, ValidationFailed

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
DEFAULT_FULL_NAME = 'User'


class AuthContext(namedtuple('AuthContext', 'user_id email full_name role')):
    __slots__ = ()

    @classmethod
    def anonymous(cls):
        return cls(None, None, None, None)

    @classmethod
    def for_user(cls, user, role):
        return cls(user.id, user.email, user.full_name, role)

    @property
    def is_authenticated(self):
        return self.user_id is not None

    @property
    def is_admin(self):
        return self.is_authenticated and self.role == 'admin'

    @property
    def is_student(self):
        return self.is_authenticated and self.role == 'student'

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
        }


def fetch_role(user_id):
    row = UserRole.query.filter_by(user_id=user_id).first()
    return row.role if row else None


def resolve_session():
    """Determine the current identity and its role; publish it on ``g.auth``."""
    ctx = AuthContext.anonymous()
    user_id = session.get('user_id')
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is None:
            # account vanished under a live cookie
            session.clear()
        else:
            ctx = AuthContext.for_user(user, fetch_role(user.id))
    g.auth = ctx


def admin_exists():
    return UserRole.query.filter_by(role='admin').first() is not None


def sign_up(email, password, full_name, role):
    """Create an account plus its single role. Returns the new AuthContext."""
    email = (email or '').strip().lower()
    password = password or ''
    full_name = (full_name or '').strip() or DEFAULT_FULL_NAME
    min_len = current_app.config.get('MIN_PASSWORD_LENGTH', 6)

    if not EMAIL_RE.match(email):
        raise ValidationFailed('A valid email is required', msg='bad_email')
    if len(password) < min_len:
        raise ValidationFailed(f'Password must be at least {min_len} characters', msg='weak_password')
    if role not in ROLES:
        raise ValidationFailed('Role must be admin or student', msg='bad_role')
    if User.query.filter_by(email=email).first():
        raise ValidationFailed('An account with this email already exists', msg='email_exists')
    if role == 'admin' and admin_exists():
        raise AdminExists()

    user = User(email=email, password_hash=generate_password_hash(password), full_name=full_name)
    try:
        db.session.add(user)
        db.session.flush()
        ctx = AuthContext.for_user(user, role)
        # the new account assigns its own role, like any other self-insert
        Store(ctx).insert(UserRole(user_id=user.id, role=role))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if role == 'admin' and admin_exists():
            raise AdminExists()
        raise ValidationFailed('An account with this email already exists', msg='email_exists')
    except Exception:
        db.session.rollback()
        raise
    return ctx


def sign_in(email, password):
    email = (email or '').strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password or ''):
        raise AuthFailed('Invalid credentials')
    session.clear()
    session['user_id'] = user.id
    ctx = AuthContext.for_user(user, fetch_role(user.id))
    g.auth = ctx
    return ctx


def sign_out():
    session.clear()
    g.auth = AuthContext.anonymous()
