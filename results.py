"""
Read-only views over finished attempts.

Exam and question details are read through the store, so they follow the
same visibility rules as everywhere else: once an exam is deactivated a
student keeps the score of an attempt but no longer sees the exam's title or
question text.
"""

from models import Exam, Question, ExamResult, StudentAnswer
from scoring import score_band, format_duration, average_score
from errors import NotFound


def result_row(store, r):
    row = r.to_dict()
    exam = store.get(Exam, r.exam_id)
    row['exam'] = {'id': exam.id, 'title': exam.title, 'category': exam.category} if exam else None
    row['time_taken'] = format_duration(r.time_taken_seconds)
    band = score_band(r.score)
    row['band'] = {'key': band.key, 'label': band.label, 'tone': band.tone}
    return row


def list_results(store, limit=None):
    rows = store.select(
        ExamResult, user_id=store.ctx.user_id,
        order_by=[ExamResult.completed_at.desc(), ExamResult.id.desc()], limit=limit,
    )
    return rows


def result_detail(store, result_id):
    """One attempt plus every answer record, in the exam's question order."""
    result = store.get(ExamResult, result_id)
    if result is None:
        raise NotFound('Result not found', redirect_to='/student')
    answers = sorted(
        store.select(StudentAnswer, result_id=result.id),
        key=lambda a: (a.question.order_index, a.id),
    )
    visible = {q.id: q for q in store.select(Question, exam_id=result.exam_id)}
    out = result_row(store, result)
    out['wrong_answers'] = result.total_questions - result.correct_answers
    out['answers'] = [
        {
            'id': a.id,
            'question_id': a.question_id,
            'selected_option': a.selected_option,
            'is_correct': a.is_correct,
            'question': visible[a.question_id].to_dict() if a.question_id in visible else None,
        }
        for a in answers
    ]
    return out


def student_dashboard(store, category=None):
    exams = store.select(Exam, order_by=[Exam.created_at.desc(), Exam.id.desc()], is_active=True)
    history = list_results(store)
    recent = history[:5]
    listed = [e for e in exams if category is None or e.category == category]
    return {
        'exams': [e.to_dict(question_count=len(e.questions)) for e in listed],
        'recent_results': [result_row(store, r) for r in recent],
        'stats': {
            'total_attempts': len(history),
            'avg_score': average_score(history),
            'exams_available': len(exams),
        },
    }
