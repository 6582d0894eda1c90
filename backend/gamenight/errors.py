"""Error taxonomy shared by the prompt services and the HTTP layer.

Services raise these; ``register_error_handlers`` turns them into the JSON
``{'error': ...}`` responses the blueprints already use for hand-written
failures.
"""

from flask import jsonify


class GameNightError(Exception):
    status_code = 500
    default_message = 'Unexpected error'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotAuthenticated(GameNightError):
    status_code = 401
    default_message = 'Not authenticated'


class NotAuthorized(GameNightError):
    status_code = 403
    default_message = 'Not authorized'


class ValidationError(GameNightError):
    status_code = 400
    default_message = 'Invalid input'


class InvalidOption(ValidationError):
    default_message = 'Option does not belong to this prompt'


class NotFound(GameNightError):
    status_code = 404
    default_message = 'Not found'


class PromptNotFound(NotFound):
    default_message = 'Prompt not found'


class GameNightNotFound(NotFound):
    default_message = 'Game night not found'


class StateConflict(GameNightError):
    status_code = 409
    default_message = 'Action not allowed in the current state'


class DuplicateSubmission(StateConflict):
    default_message = 'Already answered this prompt'


class StoreUnavailable(GameNightError):
    status_code = 503
    default_message = 'Storage unavailable'


class FeedUnavailable(GameNightError):
    status_code = 502
    default_message = 'Play-by-play feed unavailable'


def register_error_handlers(flask_app) -> None:
    @flask_app.errorhandler(GameNightError)
    def handle_game_night_error(exc: GameNightError):
        if exc.status_code >= 500:
            flask_app.logger.warning(f"[error] {type(exc).__name__}: {exc.message}")
        return jsonify({'error': exc.message}), exc.status_code
