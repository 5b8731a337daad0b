"""Schemas for question browsing and adaptive selection."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate, validates_schema, ValidationError

from ..models.question import CATEGORIES, FIGURE_TYPES, REVIEW_STATUSES


class QuestionFilterSchema(Schema):
    category = fields.String(validate=validate.OneOf(CATEGORIES))
    domain = fields.String()
    skill = fields.String()
    review_status = fields.String(validate=validate.OneOf(REVIEW_STATUSES))
    figure_type = fields.String(validate=validate.OneOf(FIGURE_TYPES))
    difficulty = fields.Integer(validate=validate.Range(min=1, max=3))
    batch_id = fields.String()
    has_figure = fields.Boolean()
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    per_page = fields.Integer(load_default=20, validate=validate.Range(min=1, max=100))

    class Meta:
        unknown = EXCLUDE


class DifficultyRangeSchema(Schema):
    category = fields.String(validate=validate.OneOf(CATEGORIES), load_default=None)
    domain = fields.String(load_default=None)
    min_difficulty = fields.Float(load_default=0.0, validate=validate.Range(min=0.0, max=1.0))
    max_difficulty = fields.Float(load_default=1.0, validate=validate.Range(min=0.0, max=1.0))
    exclude_ids = fields.List(fields.Integer(), load_default=list)
    limit = fields.Integer(load_default=20, validate=validate.Range(min=1, max=100))

    class Meta:
        unknown = EXCLUDE

    @validates_schema
    def check_range(self, data, **kwargs):
        if data["min_difficulty"] > data["max_difficulty"]:
            raise ValidationError("min_difficulty must not exceed max_difficulty", "min_difficulty")


class AdaptiveNextSchema(Schema):
    category = fields.String(validate=validate.OneOf(CATEGORIES), load_default=None)
    target_difficulty = fields.Float(load_default=0.5, validate=validate.Range(min=0.0, max=1.0))
    tolerance = fields.Float(load_default=None, allow_none=True, validate=validate.Range(min=0.0, max=1.0))
    exclude_ids = fields.List(fields.Integer(), load_default=list)

    class Meta:
        unknown = EXCLUDE


class FactorRuleSchema(Schema):
    factor = fields.String(required=True)
    min = fields.Float(load_default=0.0)
    max = fields.Float(load_default=1.0)


class FactorFilterSchema(Schema):
    category = fields.String(required=True, validate=validate.OneOf(CATEGORIES))
    factors = fields.List(fields.Nested(FactorRuleSchema), required=True, validate=validate.Length(min=1))
    exclude_ids = fields.List(fields.Integer(), load_default=list)
    limit = fields.Integer(load_default=20, validate=validate.Range(min=1, max=100))
