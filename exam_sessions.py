import threading
import time

from flask import current_app

from engine import ExamSession, SessionState
from errors import SubmissionFailed
from store import Store
from utils import log_action


class Ticker:
    """Calls ``fn`` every ``interval`` seconds until it returns False or is cancelled."""

    def __init__(self, interval, fn):
        self.interval = interval
        self.fn = fn
        self._timer = None
        self._cancelled = False
        self._lock = threading.Lock()

    def start(self):
        self._schedule()
        return self

    def _schedule(self):
        with self._lock:
            if self._cancelled:
                return
            self._timer = threading.Timer(self.interval, self._run)
            self._timer.daemon = True
            self._timer.start()

    def _run(self):
        if self._cancelled:
            return
        if self.fn() is not False:
            self._schedule()

    def cancel(self):
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()

    @property
    def cancelled(self):
        return self._cancelled


class SessionRegistry:
    """Live exam sessions, one per (account, exam)."""

    def __init__(self, app=None, clock=time.time):
        self.clock = clock
        self.app = None
        self._sessions = {}
        self._finished = {}
        self._lock = threading.Lock()
        # one lock per (account, exam); held from the existence check until the new session is registered
        self._start_locks = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions['exam_sessions'] = self

    def start(self, ctx, exam_id):
        key = (ctx.user_id, exam_id)
        with self._lock:
            start_lock = self._start_locks.setdefault(key, threading.Lock())

        with start_lock:
            with self._lock:
                existing = self._sessions.get(key)
                if existing is not None and existing.state != SessionState.SUBMITTED:
                    return existing, False

            session = ExamSession(Store(ctx), exam_id, clock=self.clock).load()
            session.on_close(lambda: self._drop(key, session))
            if self.app.config.get('EXAM_TICKER_ENABLED'):
                ticker = Ticker(self.app.config.get('EXAM_TICK_SECONDS', 1), self._tick_callback(ctx, session))
                session.on_close(ticker.cancel)
            else:
                ticker = None
            with self._lock:
                self._sessions[key] = session
                self._finished.pop(key, None)
            if ticker is not None:
                ticker.start()
        return session, True

    def get(self, ctx, exam_id):
        with self._lock:
            return self._sessions.get((ctx.user_id, exam_id))

    def finished(self, ctx, exam_id):
        """Final snapshot of the last submitted session for (account, exam), if any."""
        with self._lock:
            return self._finished.get((ctx.user_id, exam_id))

    def discard(self, ctx, exam_id):
        session = self.get(ctx, exam_id)
        if session is None:
            return False
        session.close()
        with self._lock:
            self._sessions.pop((ctx.user_id, exam_id), None)
        return True

    def _drop(self, key, session):
        # only submitted sessions leave on close; abandoned ones go through discard()
        with self._lock:
            if self._sessions.get(key) is session and session.state == SessionState.SUBMITTED:
                del self._sessions[key]
                self._finished[key] = session.snapshot()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def _tick_callback(self, ctx, session):
        app = self.app

        def tick():
            with app.app_context():
                try:
                    fired = session.tick()
                except SubmissionFailed as exc:
                    app.logger.warning('auto-submit failed for exam %s: %s', session.exam_id, exc)
                    log_action(ctx, 'exam_auto_submit_failed', {'exam_id': session.exam_id, 'error': str(exc)})
                    return False
                if fired and session.state == SessionState.SUBMITTED:
                    log_action(ctx, 'exam_auto_submitted', {
                        'exam_id': session.exam_id, 'result_id': session.attempt_id,
                    })
                return session.state == SessionState.IN_PROGRESS
        return tick


def get_registry():
    return current_app.extensions['exam_sessions']
