"""Prompt domain services: timing window, speed scoring, lifecycle.

Pure(ish) logic imported by the HTTP blueprints, kept free of Flask so it
can be driven with any ``PromptStore``.
"""

from .orchestrator import PromptActions, ResolutionResult, build_score_rows
from .scoring import DEFAULT_RULES, ScoringRules, compute_speed_points, potential_points, score_submission
from .state_machine import PromptAction, PromptState, plan_transition
from .store import PromptStore, SqlAlchemyPromptStore
from .window import PromptWindow, decay_fraction, format_time_remaining, time_remaining

__all__ = [
    'PromptActions', 'ResolutionResult', 'build_score_rows',
    'DEFAULT_RULES', 'ScoringRules', 'compute_speed_points', 'potential_points', 'score_submission',
    'PromptAction', 'PromptState', 'plan_transition',
    'PromptStore', 'SqlAlchemyPromptStore',
    'PromptWindow', 'decay_fraction', 'format_time_remaining', 'time_remaining',
]
