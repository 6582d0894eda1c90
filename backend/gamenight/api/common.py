"""Request-scoped wiring shared by the host and patron blueprints."""

from flask import current_app, request

from gamenight import db
from gamenight.errors import ValidationError
from gamenight.services.analytics import DatabaseAuditSink
from gamenight.services.prompts import (
    PromptActions, PromptWindow, SqlAlchemyPromptStore, format_time_remaining, potential_points, time_remaining,
)
from gamenight.services.prompts.state_machine import PromptState, validate_duration
from gamenight.services.prompts.window import as_utc, utcnow


def now():
    clock = current_app.config.get('PROMPT_CLOCK') or utcnow
    return as_utc(clock())


def audit_sink():
    return DatabaseAuditSink(db.session)


def prompt_actions():
    """A fresh PromptActions bound to this request's session."""
    return PromptActions(
        store=SqlAlchemyPromptStore(db.session),
        audit=audit_sink(),
        clock=now,
    )


def json_body():
    return request.get_json(silent=True) or {}


def int_field(data, name, required=True):
    value = data.get(name)
    if value is None or value == '':
        if required:
            raise ValidationError(f'{name} is required')
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')


def duration_field(data):
    raw = data.get('duration_seconds', current_app.config.get('DEFAULT_PROMPT_DURATION_SEC', 30))
    duration = validate_duration(raw)
    max_duration = int(current_app.config.get('MAX_PROMPT_DURATION_SEC', 900))
    if duration > max_duration:
        raise ValidationError(f'Duration must be at most {max_duration} seconds')
    return duration


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def countdown_payload(prompt, at):
    """Remaining time and live point value; only meaningful while open."""
    if prompt.state != PromptState.OPEN.value:
        return None
    window = PromptWindow(prompt.opens_at, prompt.locks_at)
    remaining = time_remaining(window, at)
    return {
        'time_remaining_ms': int(remaining.total_seconds() * 1000) if remaining is not None else None,
        'time_remaining': format_time_remaining(remaining),
        'potential_points': potential_points(window, at),
    }


def prompt_to_dict(prompt, at=None, include_options=True):
    payload = {
        'id': prompt.id,
        'game_night_id': prompt.game_night_id,
        'kind': prompt.kind,
        'question': prompt.question,
        'over_under_line': prompt.over_under_line,
        'state': prompt.state,
        'opens_at': _iso(prompt.opens_at),
        'locks_at': _iso(prompt.locks_at),
        'resolved_at': _iso(prompt.resolved_at),
    }
    if include_options:
        payload['options'] = [o.to_dict() for o in prompt.options]
    payload['countdown'] = countdown_payload(prompt, at or now())
    return payload
