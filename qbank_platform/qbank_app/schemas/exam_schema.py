"""Schemas for exam attempts and answers."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.attempt import ATTEMPT_MODES
from ..models.question import CATEGORIES

SECTION_CHOICES = ("reading_writing", "math")


class AttemptCreateSchema(Schema):
    mode = fields.String(load_default="practice", validate=validate.OneOf(ATTEMPT_MODES))
    section = fields.String(load_default=None, allow_none=True, validate=validate.OneOf(SECTION_CHOICES))


class ProgressSchema(Schema):
    current_section_index = fields.Integer(validate=validate.Range(min=0))
    current_question_index = fields.Integer(validate=validate.Range(min=0))


class AnswerSaveSchema(Schema):
    question_id = fields.Integer(required=True)
    selected_answer = fields.String(allow_none=True)
    flagged = fields.Boolean()
    crossed_out = fields.List(fields.String(validate=validate.Length(max=32)))
    time_spent_ms = fields.Integer(validate=validate.Range(min=0))

    class Meta:
        unknown = EXCLUDE


class QuestionRefSchema(Schema):
    question_id = fields.Integer(required=True)


class CrossedOutSchema(QuestionRefSchema):
    crossed_out = fields.List(fields.String(validate=validate.Length(max=32)), required=True)


class WrongAnswersQuerySchema(Schema):
    category = fields.String(load_default=None, validate=validate.OneOf(CATEGORIES))
    domain = fields.String(load_default=None)
    limit = fields.Integer(load_default=50, validate=validate.Range(min=1, max=200))
    offset = fields.Integer(load_default=0, validate=validate.Range(min=0))

    class Meta:
        unknown = EXCLUDE


class PreviousAttemptsQuerySchema(Schema):
    exclude_attempt_id = fields.Integer(load_default=None)

    class Meta:
        unknown = EXCLUDE
