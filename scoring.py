from collections import namedtuple

from models import OPTIONS

Band = namedtuple('Band', 'key floor label tone')

# highest floor first; every score in [0, 100] falls into exactly one band
SCORE_BANDS = (
    Band('excellent', 80, 'Excellent! Outstanding performance!', 'success'),
    Band('good', 60, 'Good job! Keep practicing!', 'info'),
    Band('fair', 40, 'Fair attempt. More practice needed.', 'warning'),
    Band('poor', 0, 'Keep learning. You can do better!', 'destructive'),
)

Grade = namedtuple('Grade', 'marks correct_count total score')
Mark = namedtuple('Mark', 'question_id selected_option is_correct')


def percent(part, whole):
    """round(100 * part / whole) with halves rounded up, in integers."""
    if whole <= 0:
        raise ValueError('whole must be positive')
    return (200 * part + whole) // (2 * whole)


def grade(questions, answers):
    """
    Mark every question in order against ``answers`` ({question_id: option}).
    Unanswered questions get a mark with ``selected_option=None``.
    """
    if not questions:
        raise ValueError('cannot grade an exam with no questions')
    marks = []
    for q in questions:
        selected = answers.get(q.id)
        marks.append(Mark(q.id, selected, selected is not None and selected == q.correct_option))
    correct = sum(1 for m in marks if m.is_correct)
    return Grade(marks, correct, len(marks), percent(correct, len(marks)))


def score_band(score):
    if score < 0 or score > 100:
        raise ValueError(f'score out of range: {score}')
    for band in SCORE_BANDS:
        if score >= band.floor:
            return band
    return SCORE_BANDS[-1]


def is_valid_option(option):
    return option in OPTIONS


def format_duration(seconds):
    if seconds is None:
        return '-'
    return f'{seconds // 60}m {seconds % 60}s'


def format_clock(seconds):
    seconds = max(0, int(seconds))
    return f'{seconds // 60:02d}:{seconds % 60:02d}'


def timer_level(remaining, total):
    if total <= 0:
        return 'danger'
    fraction = remaining / total
    if fraction > 0.5:
        return 'ok'
    if fraction > 0.25:
        return 'warning'
    return 'danger'


def average_score(results):
    """Mean of correct/total across results, as a rounded percentage."""
    rows = [r for r in results if r.total_questions]
    if not rows:
        return 0
    total = sum(r.correct_answers / r.total_questions * 100 for r in rows)
    return int(total / len(rows) + 0.5)
