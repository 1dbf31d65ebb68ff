"""
Row-level authorization rules.

Every read or write that goes through ``store.Store`` is checked against the
table below. A policy entry is a list of predicates ``(ctx, row) -> bool``;
the row is permitted when any predicate holds. Actions without an entry are
denied.
"""

from models import db, ExamResult


def is_admin(ctx, row):
    return ctx.is_admin


def is_self(ctx, row):
    return ctx.is_authenticated and row.id == ctx.user_id


def owns_row(ctx, row):
    return ctx.is_authenticated and row.user_id == ctx.user_id


def exam_is_active(ctx, row):
    return bool(row.is_active)


def parent_exam_is_active(ctx, row):
    exam = row.exam
    return exam is not None and bool(exam.is_active)


def owns_parent_result(ctx, row):
    if not ctx.is_authenticated:
        return False
    result = row.result or db.session.get(ExamResult, row.result_id)
    return result is not None and result.user_id == ctx.user_id


POLICIES = {
    ('profiles', 'select'): [is_self, is_admin],
    ('profiles', 'insert'): [is_self],
    ('profiles', 'update'): [is_self],

    ('user_roles', 'select'): [owns_row, is_admin],
    ('user_roles', 'insert'): [owns_row],

    ('exams', 'select'): [exam_is_active, is_admin],
    ('exams', 'insert'): [is_admin],
    ('exams', 'update'): [is_admin],
    ('exams', 'delete'): [is_admin],

    ('questions', 'select'): [parent_exam_is_active, is_admin],
    ('questions', 'insert'): [is_admin],
    ('questions', 'update'): [is_admin],
    ('questions', 'delete'): [is_admin],

    ('exam_results', 'select'): [owns_row, is_admin],
    ('exam_results', 'insert'): [owns_row],

    ('student_answers', 'select'): [owns_parent_result],
    ('student_answers', 'insert'): [owns_parent_result],
}


def permits(ctx, action, row):
    rules = POLICIES.get((row.__tablename__, action))
    if not rules:
        return False
    return any(rule(ctx, row) for rule in rules)
