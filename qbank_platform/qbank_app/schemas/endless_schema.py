"""Schemas for endless mode."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from ..models.question import CATEGORIES


class EndlessStartSchema(Schema):
    category = fields.String(load_default=None, allow_none=True, validate=validate.OneOf(CATEGORIES))
    domain = fields.String(load_default=None, allow_none=True)


class EndlessAnswerSchema(Schema):
    question_id = fields.Integer(required=True)
    selected_answer = fields.String(required=True, validate=validate.Length(min=1, max=32))
    time_spent_ms = fields.Integer(load_default=0, validate=validate.Range(min=0))


class DailyGoalSchema(Schema):
    # Out-of-range targets are clamped by the service rather than rejected.
    target = fields.Integer(required=True)
