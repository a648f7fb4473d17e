# core/errors.py
"""
Service-layer exceptions translated into JSON error responses by the app
"""


def field_errors(issues):
    """Group ``{field, message}`` issues per field for inline display"""
    grouped = {}
    for issue in issues:
        grouped.setdefault(issue['field'], []).append(issue['message'])
    return grouped


class ServiceError(Exception):
    """Base error carrying an HTTP status for the JSON error handler"""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationFailed(ServiceError):
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self):
        return {
            'error': self.message,
            'validationIssues': {'errors': self.errors},
            'fieldErrors': field_errors(self.errors),
        }


class AuthenticationError(ServiceError):
    status_code = 401


class PermissionDeniedError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class InvalidStateError(ServiceError):
    status_code = 422
