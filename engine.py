"""
Exam-taking engine.

One ``ExamSession`` drives one student through one exam:

    LOADING --load--> IN_PROGRESS --submit/timeout--> SUBMITTING
    SUBMITTING --ok--> SUBMITTED
    SUBMITTING --error--> FAILED --submit--> SUBMITTING

``submit`` only leaves IN_PROGRESS or FAILED, and the move into SUBMITTING
happens under the session lock, so a second submit (from the ticker, a
double click, or re-entrantly from inside persistence) finds the session
already SUBMITTING and does nothing.
"""

import enum
import threading
import time
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from models import Exam, Question, ExamResult, StudentAnswer
from scoring import grade, is_valid_option, format_clock, timer_level
from errors import ExamUnavailable, ServiceError, SubmissionFailed, ValidationFailed


class SessionState(str, enum.Enum):
    LOADING = 'loading'
    IN_PROGRESS = 'in_progress'
    SUBMITTING = 'submitting'
    SUBMITTED = 'submitted'
    FAILED = 'failed'


ExamView = namedtuple('ExamView', 'id title description category duration_minutes')
QuestionView = namedtuple('QuestionView', 'id question_text options correct_option order_index')

# states in which the student is still answering
OPEN_STATES = (SessionState.IN_PROGRESS, SessionState.FAILED)


class ExamSession:

    def __init__(self, store, exam_id, clock=time.time):
        self.store = store
        self.exam_id = exam_id
        self.clock = clock
        self.state = SessionState.LOADING
        self.exam = None
        self.questions = []
        self.current_index = 0
        self.answers = {}
        self.duration_seconds = 0
        self.remaining_seconds = 0
        self.started_at = None
        self.attempt_id = None
        self.last_error = None
        self.auto_submitted = False
        self._expired = False
        self._lock = threading.Lock()
        self._on_close = []

    # ---- lifecycle -------------------------------------------------------
    def load(self):
        if self.state != SessionState.LOADING:
            return self
        exam = self.store.get(Exam, self.exam_id)
        if exam is None or not exam.is_active:
            raise ExamUnavailable('Exam not found or not available', redirect_to='/student')
        rows = self.store.select(Question, exam_id=exam.id, order_by=Question.order_index)
        if not rows:
            raise ExamUnavailable('Exam has no questions', redirect_to='/student')

        # plain copies; ORM rows do not outlive the request that loaded them
        self.exam = ExamView(exam.id, exam.title, exam.description, exam.category, exam.duration_minutes)
        self.questions = [
            QuestionView(q.id, q.question_text, q.options(), q.correct_option, q.order_index)
            for q in rows
        ]
        with self._lock:
            self.duration_seconds = exam.duration_minutes * 60
            self.remaining_seconds = self.duration_seconds
            self.current_index = 0
            self.started_at = self.clock()
            self.state = SessionState.IN_PROGRESS
        return self

    def on_close(self, callback):
        self._on_close.append(callback)

    def close(self):
        callbacks, self._on_close = self._on_close, []
        for cb in callbacks:
            cb()

    @property
    def is_open(self):
        return self.state in OPEN_STATES

    # ---- events ----------------------------------------------------------
    def tick(self):
        """Refresh the countdown from the wall clock. Returns True if this tick timed the exam out."""
        with self._lock:
            if self.state != SessionState.IN_PROGRESS:
                return False
            elapsed = int(self.clock() - self.started_at)
            self.remaining_seconds = max(0, self.duration_seconds - elapsed)
            fire = self.remaining_seconds == 0 and not self._expired
            if fire:
                self._expired = True
        if fire:
            self.submit(auto=True)
        return fire

    def go_to(self, index):
        with self._lock:
            if not self.is_open:
                return self.current_index
            if type(index) is int and 0 <= index < len(self.questions):
                self.current_index = index
            return self.current_index

    def select(self, question_id, option):
        if not is_valid_option(option):
            raise ValidationFailed(f'Unknown option: {option!r}', msg='bad_option')
        with self._lock:
            if not self.is_open:
                raise ValidationFailed('Exam is not open for answers', msg='session_closed')
            if question_id not in {q.id for q in self.questions}:
                raise ValidationFailed('Question is not part of this exam', msg='bad_question')
            self.answers[question_id] = option

    def submit(self, auto=False):
        """
        Grade and persist the attempt. Returns the new attempt id, or None when
        the session is not open for submission (already submitting/submitted).
        Raises SubmissionFailed when the write fails; the session then stays
        answerable and may be submitted again.
        """
        with self._lock:
            if self.state not in OPEN_STATES:
                return None
            self.state = SessionState.SUBMITTING
            outcome = grade(self.questions, self.answers)
            elapsed = int(self.clock() - self.started_at)

        try:
            attempt_id = self._persist(outcome, elapsed)
        except (SQLAlchemyError, ServiceError) as exc:
            with self._lock:
                self.state = SessionState.FAILED
                self.last_error = str(exc)
            raise SubmissionFailed(str(exc)) from exc

        with self._lock:
            self.state = SessionState.SUBMITTED
            self.attempt_id = attempt_id
            self.auto_submitted = auto
            self.last_error = None
            self.questions = []
            self.answers = {}
        self.close()
        return attempt_id

    def _persist(self, outcome, elapsed):
        store = self.store
        with store.transaction():
            result = store.insert(ExamResult(
                user_id=store.ctx.user_id,
                exam_id=self.exam.id,
                score=outcome.score,
                total_questions=outcome.total,
                correct_answers=outcome.correct_count,
                time_taken_seconds=elapsed,
            ))
            store.insert_many([
                StudentAnswer(
                    result_id=result.id,
                    question_id=m.question_id,
                    selected_option=m.selected_option,
                    is_correct=m.is_correct,
                )
                for m in outcome.marks
            ])
            return result.id

    # ---- views -----------------------------------------------------------
    def snapshot(self):
        with self._lock:
            out = {
                'state': self.state.value,
                'exam_id': self.exam_id,
                'attempt_id': self.attempt_id,
                'auto_submitted': self.auto_submitted,
                'error': self.last_error,
            }
            if self.state == SessionState.SUBMITTED or self.exam is None:
                return out
            out.update({
                'exam': self.exam._asdict(),
                'questions': [
                    {'id': q.id, 'question_text': q.question_text, 'options': q.options, 'order_index': q.order_index}
                    for q in self.questions
                ],
                'current_index': self.current_index,
                'answers': {str(qid): opt for qid, opt in self.answers.items()},
                'answered_count': len(self.answers),
                'total_questions': len(self.questions),
                'remaining_seconds': self.remaining_seconds,
                'clock': format_clock(self.remaining_seconds),
                'timer_level': timer_level(self.remaining_seconds, self.duration_seconds),
            })
            return out
