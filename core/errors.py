"""Error taxonomy shared by every JSON endpoint.

Views and services raise these; ``core.http.json_endpoint`` turns them into a
``{"message": ...}`` body with the matching status code.
"""


class ApiError(Exception):
    status = 500

    def __init__(self, message, error=None, **extra):
        super().__init__(message)
        self.message = message
        self.error = error
        self.extra = extra

    def as_dict(self):
        body = {'message': self.message}
        if self.error is not None:
            body['error'] = self.error
        body.update(self.extra)
        return body


class BadRequest(ApiError):
    status = 400


class Unauthorized(ApiError):
    status = 401


class Forbidden(ApiError):
    status = 403


class NotFound(ApiError):
    status = 404
