"""
Exam authoring: form validation plus the create/edit/delete writes.

Validation runs before any write; every write happens inside a single store
transaction so a rejected or failed save leaves nothing behind.
"""

from models import Exam, Question, ExamResult, CATEGORIES, OPTIONS
from errors import NotFound, ValidationFailed

DURATION_BY_CATEGORY = {
    'basic': 40,
    'prelims': 20,
    'mains': 30,
}

QUESTION_FIELDS = ('question_text', 'option_a', 'option_b', 'option_c', 'option_d')


def default_duration(category):
    try:
        return DURATION_BY_CATEGORY[category]
    except KeyError:
        raise ValidationFailed(f'Unknown category: {category!r}', msg='bad_category')


def _text(value):
    return value.strip() if isinstance(value, str) else ''


def _flag(value, default=True):
    if value is None:
        return default
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def validate_exam_form(data):
    """Normalize an exam form ``{title, description, category, duration_minutes, is_active, questions}``."""
    title = _text(data.get('title'))
    if not title:
        raise ValidationFailed('Please enter an exam title', msg='missing_title')

    category = _text(data.get('category')) or 'basic'
    if category not in CATEGORIES:
        raise ValidationFailed(f'Unknown category: {category!r}', msg='bad_category')

    duration = data.get('duration_minutes')
    if duration in (None, ''):
        duration = default_duration(category)
    else:
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            raise ValidationFailed('Duration must be a whole number of minutes', msg='bad_duration')
        if duration <= 0:
            raise ValidationFailed('Duration must be positive', msg='bad_duration')

    raw_questions = data.get('questions') or []
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ValidationFailed('Please add at least one question', msg='no_questions')

    questions = []
    for i, raw in enumerate(raw_questions):
        if not isinstance(raw, dict):
            raise ValidationFailed(f'Question {i + 1} is malformed', msg='bad_question')
        fields = {name: _text(raw.get(name)) for name in QUESTION_FIELDS}
        if not all(fields.values()):
            raise ValidationFailed(f'Please fill in all fields for question {i + 1}', msg='incomplete_question')
        correct = _text(raw.get('correct_option')).upper() or 'A'
        if correct not in OPTIONS:
            raise ValidationFailed(f'Question {i + 1} has an invalid correct option', msg='bad_correct_option')
        fields['correct_option'] = correct
        fields['order_index'] = i
        questions.append(fields)

    return {
        'title': title,
        'description': _text(data.get('description')) or None,
        'category': category,
        'duration_minutes': duration,
        'is_active': _flag(data.get('is_active')),
        'questions': questions,
    }


def _question_rows(exam_id, questions):
    return [Question(exam_id=exam_id, **q) for q in questions]


def create_exam(store, form):
    with store.transaction():
        exam = store.insert(Exam(
            title=form['title'],
            description=form['description'],
            category=form['category'],
            duration_minutes=form['duration_minutes'],
            is_active=form['is_active'],
            created_by=store.ctx.user_id,
        ))
        store.insert_many(_question_rows(exam.id, form['questions']))
    return exam


def get_exam(store, exam_id):
    exam = store.get(Exam, exam_id)
    if exam is None:
        raise NotFound('Exam not found', redirect_to='/admin/exams')
    return exam


def update_exam(store, exam_id, form):
    """Overwrite the exam fields and replace its whole question list."""
    exam = get_exam(store, exam_id)
    with store.transaction():
        store.update(
            exam,
            title=form['title'],
            description=form['description'],
            category=form['category'],
            duration_minutes=form['duration_minutes'],
            is_active=form['is_active'],
        )
        for q in list(exam.questions):
            store.delete(q)
        store.insert_many(_question_rows(exam.id, form['questions']))
    return exam


def delete_exam(store, exam_id):
    exam = get_exam(store, exam_id)
    with store.transaction():
        store.delete(exam)


def set_active(store, exam_id, is_active=None):
    """Set the active flag; ``None`` flips it."""
    exam = get_exam(store, exam_id)
    value = (not exam.is_active) if is_active is None else _flag(is_active)
    with store.transaction():
        store.update(exam, is_active=value)
    return exam


def exam_detail(store, exam_id):
    exam = get_exam(store, exam_id)
    questions = store.select(Question, exam_id=exam.id, order_by=Question.order_index)
    out = exam.to_dict(question_count=len(questions))
    out['questions'] = [q.to_dict() for q in questions]
    return out


def list_exams(store, *criteria, **filters):
    exams = store.select(Exam, *criteria, order_by=[Exam.created_at.desc(), Exam.id.desc()], **filters)
    return [e.to_dict(question_count=len(e.questions)) for e in exams]


def dashboard_stats(store):
    exams = store.select(Exam, order_by=[Exam.created_at.desc(), Exam.id.desc()])
    return {
        'total_exams': len(exams),
        'active_exams': sum(1 for e in exams if e.is_active),
        'total_attempts': store.count(ExamResult),
        'recent_exams': [
            {'id': e.id, 'title': e.title, 'category': e.category, 'created_at': e.created_at.isoformat()}
            for e in exams[:5]
        ],
    }
