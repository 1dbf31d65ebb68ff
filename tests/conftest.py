import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from config import TestConfig
from models import db
from auth import sign_up
from authoring import validate_exam_form, create_exam
from store import Store


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def clock(app):
    fake = FakeClock()
    app.extensions['exam_sessions'].clock = fake
    return fake


def question(text, correct='A'):
    return {
        'question_text': text,
        'option_a': f'{text} a',
        'option_b': f'{text} b',
        'option_c': f'{text} c',
        'option_d': f'{text} d',
        'correct_option': correct,
    }


def exam_form(title='Prelims mock', category='prelims', questions=None, **extra):
    form = {
        'title': title,
        'category': category,
        'questions': questions if questions is not None else [
            question('Q1', 'A'), question('Q2', 'B'), question('Q3', 'C'),
        ],
    }
    form.update(extra)
    return form


@pytest.fixture
def admin(app_ctx):
    return sign_up('admin@example.com', 'secret1', 'Admin', 'admin')


@pytest.fixture
def student(app_ctx):
    return sign_up('student@example.com', 'secret1', 'Stu Dent', 'student')


@pytest.fixture
def other_student(app_ctx):
    return sign_up('other@example.com', 'secret1', 'Other', 'student')


@pytest.fixture
def make_exam(admin):
    def make(**kwargs):
        return create_exam(Store(admin), validate_exam_form(exam_form(**kwargs)))
    return make


def login(client, email, password='secret1'):
    resp = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return resp
