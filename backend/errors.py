"""
Error types raised by the board.

Every error is transient from the viewer's point of view: it is rendered as a
JSON body with an HTTP status and the request leaves no partial state behind.
"""
import math

from flask import jsonify


class BoardError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationError(BoardError):
    """A required form field is missing or malformed"""
    status_code = 400


class AuthorizationRequired(BoardError):
    """The action needs a signed-in viewer"""
    status_code = 401

    def __init__(self, message='Authorization required'):
        super().__init__(message)


class Forbidden(BoardError):
    status_code = 403


class NotFound(BoardError):
    status_code = 404


class CooldownActive(BoardError):
    """A post was submitted inside the cooldown window"""
    status_code = 429

    def __init__(self, remaining_seconds):
        self.remaining_seconds = max(0, math.ceil(remaining_seconds))
        super().__init__(
            f'You can create a new post in {self.remaining_seconds} seconds'
        )

    def to_dict(self):
        data = super().to_dict()
        data['retry_after'] = self.remaining_seconds
        return data


class RemoteStoreError(BoardError):
    """The hosted store rejected or failed a request"""
    status_code = 502


def register_error_handlers(app):
    @app.errorhandler(BoardError)
    def handle_board_error(error):
        if error.status_code >= 500:
            app.logger.warning('Store failure: %s', error.message)
        response = jsonify(error.to_dict())
        if isinstance(error, CooldownActive):
            response.headers['Retry-After'] = str(error.remaining_seconds)
        return response, error.status_code
