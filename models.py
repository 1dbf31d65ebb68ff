from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

ROLES = ('admin', 'student')
CATEGORIES = ('basic', 'prelims', 'mains')
OPTIONS = ('A', 'B', 'C', 'D')


@event.listens_for(Engine, 'connect')
def _sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ships with FK enforcement off; cascades depend on it
    if type(dbapi_connection).__module__.startswith('sqlite3'):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


class User(db.Model):
    __tablename__ = 'profiles'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(255), nullable=False, default='User')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    roles = db.relationship('UserRole', backref='user', cascade='all, delete-orphan', passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.Enum(*ROLES, name='app_role'), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
        # at most one admin system-wide
        db.Index(
            'uq_user_roles_single_admin', 'role', unique=True,
            sqlite_where=db.text("role = 'admin'"),
            postgresql_where=db.text("role = 'admin'"),
        ),
    )


class Log(db.Model):
    __tablename__ = 'logs'
    id = db.Column(db.Integer, primary_key=True)
    who_user_id = db.Column(db.Integer, nullable=True)
    username = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(30), nullable=True)
    event_type = db.Column(db.String(120), nullable=False)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'who_user_id': self.who_user_id,
            'username': self.username,
            'role': self.role,
            'event_type': self.event_type,
            'meta': self.meta,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Exam(db.Model):
    __tablename__ = 'exams'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.Enum(*CATEGORIES, name='exam_category'), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    questions = db.relationship(
        'Question', backref='exam', order_by='Question.order_index',
        cascade='all, delete-orphan', passive_deletes=True,
    )
    results = db.relationship('ExamResult', backref='exam', cascade='all, delete-orphan', passive_deletes=True)

    def to_dict(self, question_count=None):
        out = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'duration_minutes': self.duration_minutes,
            'is_active': self.is_active,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if question_count is not None:
            out['question_count'] = question_count
        return out


class Question(db.Model):
    __tablename__ = 'questions'
    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=False)
    option_b = db.Column(db.Text, nullable=False)
    option_c = db.Column(db.Text, nullable=False)
    option_d = db.Column(db.Text, nullable=False)
    correct_option = db.Column(db.String(1), nullable=False)  # 'A','B','C','D'
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    answers = db.relationship('StudentAnswer', backref='question', cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (
        db.CheckConstraint("correct_option IN ('A', 'B', 'C', 'D')", name='ck_questions_correct_option'),
    )

    def options(self):
        return {'A': self.option_a, 'B': self.option_b, 'C': self.option_c, 'D': self.option_d}

    def to_dict(self, with_answer=True):
        out = {
            'id': self.id,
            'question_text': self.question_text,
            'options': self.options(),
            'order_index': self.order_index,
        }
        if with_answer:
            out['correct_option'] = self.correct_option
        return out


class ExamResult(db.Model):
    __tablename__ = 'exam_results'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    total_questions = db.Column(db.Integer, nullable=False)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    time_taken_seconds = db.Column(db.Integer, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    answers = db.relationship('StudentAnswer', backref='result', cascade='all, delete-orphan', passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'exam_id': self.exam_id,
            'score': self.score,
            'total_questions': self.total_questions,
            'correct_answers': self.correct_answers,
            'time_taken_seconds': self.time_taken_seconds,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class StudentAnswer(db.Model):
    __tablename__ = 'student_answers'
    id = db.Column(db.Integer, primary_key=True)
    result_id = db.Column(db.Integer, db.ForeignKey('exam_results.id', ondelete='CASCADE'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False)
    selected_option = db.Column(db.String(1), nullable=True)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.CheckConstraint(
            "selected_option IS NULL OR selected_option IN ('A', 'B', 'C', 'D')",
            name='ck_student_answers_selected_option',
        ),
    )
