from flask import jsonify, current_app


class ServiceError(Exception):
    """Base for failures the API reports back to the caller."""
    status = 500
    msg = 'error'

    def __init__(self, detail=None, msg=None):
        super().__init__(detail or msg or self.msg)
        self.detail = detail
        if msg:
            self.msg = msg

    def payload(self):
        out = {'ok': False, 'msg': self.msg}
        if self.detail:
            out['detail'] = self.detail
        return out


class NotFound(ServiceError):
    status = 404
    msg = 'not_found'

    def __init__(self, detail=None, msg=None, redirect_to=None):
        super().__init__(detail, msg)
        self.redirect_to = redirect_to

    def payload(self):
        out = super().payload()
        if self.redirect_to:
            out['redirect'] = self.redirect_to
        return out


class ExamUnavailable(NotFound):
    msg = 'exam_unavailable'


class PolicyDenied(ServiceError):
    status = 403
    msg = 'forbidden'


class ValidationFailed(ServiceError):
    status = 400
    msg = 'validation_failed'


class AuthFailed(ServiceError):
    status = 401
    msg = 'invalid_credentials'


class AdminExists(ServiceError):
    status = 409
    msg = 'admin_exists'

    def __init__(self):
        super().__init__('An admin account already exists. Only one admin is allowed.')


class SubmissionFailed(ServiceError):
    status = 503
    msg = 'submission_failed'


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(err):
        if err.status >= 500:
            current_app.logger.warning('service error: %s', err)
        return jsonify(err.payload()), err.status
