import threading

import pytest

from exam_sessions import Ticker
from authoring import set_active
from models import ExamResult, StudentAnswer
from store import Store
from conftest import login


@pytest.fixture
def student_client(client, student):
    login(client, student.email)
    return client


def start(client, exam_id):
    resp = client.post(f'/api/student/exams/{exam_id}/start')
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['session']


def test_take_exam_end_to_end(student_client, make_exam, clock, app):
    exam = make_exam()
    session = start(student_client, exam.id)
    assert session['state'] == 'in_progress'
    assert session['remaining_seconds'] == 1200
    assert session['clock'] == '20:00'
    assert all('correct_option' not in q for q in session['questions'])
    q1, q2, q3 = (q['id'] for q in session['questions'])

    student_client.post(f'/api/student/exams/{exam.id}/select', json={'question_id': q1, 'option': 'a'})
    student_client.post(f'/api/student/exams/{exam.id}/select', json={'question_id': q2, 'option': 'D'})
    moved = student_client.post(f'/api/student/exams/{exam.id}/goto', json={'index': 2}).get_json()['session']
    assert moved['current_index'] == 2
    assert moved['answered_count'] == 2

    clock.advance(61)
    state = student_client.get(f'/api/student/exams/{exam.id}/session').get_json()['session']
    assert state['remaining_seconds'] == 1139

    resp = student_client.post(f'/api/student/exams/{exam.id}/submit')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['auto_submitted'] is False
    result_id = body['result_id']
    assert body['redirect'] == f'/student/result/{result_id}'

    detail = student_client.get(f'/api/student/results/{result_id}').get_json()['result']
    assert (detail['total_questions'], detail['correct_answers'], detail['score']) == (3, 1, 33)
    assert detail['wrong_answers'] == 2
    assert detail['time_taken'] == '1m 1s'
    assert detail['band']['key'] == 'poor'
    assert [(a['question']['id'], a['selected_option'], a['is_correct']) for a in detail['answers']] == [
        (q1, 'A', True), (q2, 'D', False), (q3, None, False),
    ]

    # submitting again reports the same attempt instead of creating another
    again = student_client.post(f'/api/student/exams/{exam.id}/submit').get_json()
    assert again['result_id'] == result_id
    with app.app_context():
        assert ExamResult.query.count() == 1


def test_out_of_range_goto_keeps_position(student_client, make_exam, clock):
    exam = make_exam()
    start(student_client, exam.id)
    student_client.post(f'/api/student/exams/{exam.id}/goto', json={'index': 1})
    for bad in (-1, 3, 'x'):
        s = student_client.post(f'/api/student/exams/{exam.id}/goto', json={'index': bad}).get_json()['session']
        assert s['current_index'] == 1


def test_bad_option_rejected(student_client, make_exam, clock):
    exam = make_exam()
    session = start(student_client, exam.id)
    resp = student_client.post(
        f'/api/student/exams/{exam.id}/select',
        json={'question_id': session['questions'][0]['id'], 'option': 'Z'},
    )
    assert resp.status_code == 400
    assert resp.get_json()['msg'] == 'bad_option'


def test_timeout_submits_on_next_request(student_client, make_exam, clock, app):
    exam = make_exam()
    start(student_client, exam.id)
    clock.advance(20 * 60)

    state = student_client.get(f'/api/student/exams/{exam.id}/session').get_json()['session']
    assert state['state'] == 'submitted'
    assert state['auto_submitted'] is True

    # polling again after the hand-off still points at the one attempt
    later = student_client.get(f'/api/student/exams/{exam.id}/session').get_json()['session']
    assert later['attempt_id'] == state['attempt_id']
    with app.app_context():
        assert ExamResult.query.count() == 1
        result = ExamResult.query.one()
        assert (result.correct_answers, result.score) == (0, 0)
        assert StudentAnswer.query.filter_by(result_id=result.id, selected_option=None).count() == 3


def test_restart_resumes_live_session(student_client, make_exam, clock):
    exam = make_exam()
    first = start(student_client, exam.id)
    student_client.post(f'/api/student/exams/{exam.id}/select',
                        json={'question_id': first['questions'][0]['id'], 'option': 'B'})
    resp = student_client.post(f'/api/student/exams/{exam.id}/start').get_json()
    assert resp['resumed'] is True
    assert resp['session']['answered_count'] == 1


def test_abandon_discards_session(student_client, make_exam, clock, app):
    exam = make_exam()
    start(student_client, exam.id)
    assert student_client.delete(f'/api/student/exams/{exam.id}/session').status_code == 200
    resp = student_client.get(f'/api/student/exams/{exam.id}/session')
    assert resp.status_code == 404
    assert resp.get_json()['redirect'] == '/student'
    assert len(app.extensions['exam_sessions']) == 0


def test_unavailable_exam_redirects(student_client, make_exam):
    hidden = make_exam(is_active=False)
    for exam_id in (hidden.id, 999):
        resp = student_client.post(f'/api/student/exams/{exam_id}/start')
        assert resp.status_code == 404
        assert resp.get_json()['redirect'] == '/student'


def test_results_are_private(client, student, other_student, make_exam, clock):
    exam = make_exam()
    login(client, student.email)
    start(client, exam.id)
    result_id = client.post(f'/api/student/exams/{exam.id}/submit').get_json()['result_id']
    client.post('/api/auth/logout')

    login(client, other_student.email)
    resp = client.get(f'/api/student/results/{result_id}')
    assert resp.status_code == 404
    assert client.get('/api/student/results').get_json()['results'] == []


def test_dashboard_filters_by_category(student_client, make_exam, clock):
    make_exam(title='Basic 1', category='basic')
    make_exam(title='Mains 1', category='mains')
    make_exam(title='Mains hidden', category='mains', is_active=False)

    body = student_client.get('/api/student/dashboard?category=mains').get_json()
    assert [e['title'] for e in body['exams']] == ['Mains 1']
    assert body['exams'][0]['question_count'] == 3
    assert body['stats'] == {'total_attempts': 0, 'avg_score': 0, 'exams_available': 2}
    assert student_client.get('/api/student/dashboard?category=finals').status_code == 400


def test_ticker_repeats_until_told_to_stop():
    calls = []
    done = threading.Event()

    def fn():
        calls.append(1)
        if len(calls) == 3:
            done.set()
            return False
        return True

    ticker = Ticker(0.01, fn).start()
    assert done.wait(2)
    ticker.cancel()
    assert len(calls) == 3


def test_ticker_cancel_stops_callbacks():
    calls = []
    ticker = Ticker(60, lambda: calls.append(1)).start()
    ticker.cancel()
    assert ticker.cancelled
    assert calls == []


def test_deactivated_exam_hides_questions_in_results(student_client, admin, make_exam, clock):
    exam = make_exam()
    session = start(student_client, exam.id)
    q1 = session['questions'][0]['id']
    student_client.post(f'/api/student/exams/{exam.id}/select', json={'question_id': q1, 'option': 'A'})
    result_id = student_client.post(f'/api/student/exams/{exam.id}/submit').get_json()['result_id']

    set_active(Store(admin), exam.id, False)

    detail = student_client.get(f'/api/student/results/{result_id}').get_json()['result']
    assert (detail['score'], detail['correct_answers']) == (33, 1)
    assert detail['exam'] is None
    assert [(a['question_id'], a['selected_option'], a['question']) for a in detail['answers']][0] == (q1, 'A', None)
    assert all(a['question'] is None for a in detail['answers'])

    listed = student_client.get('/api/student/results').get_json()['results']
    assert [(r['id'], r['exam']) for r in listed] == [(result_id, None)]
