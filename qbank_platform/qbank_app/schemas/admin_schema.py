"""Schemas for admin generation, review and bank maintenance payloads."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from ..models.generation import PIPELINES, REVIEW_TYPES
from ..models.question import CATEGORIES
from ..services import cross_text_templates, grammar_templates
from ..services.math_templates import ALL_MATH_SKILLS, MATH_DOMAINS
from ..services.reading_data_templates import DATA_DOMAINS, DATA_TYPES
from ..services.reading_templates import READING_PASSAGE_TYPES, READING_QUESTION_TYPES
from ..services.transitions_templates import RELATIONSHIP_TYPES, TOPIC_CATEGORIES


def _count():
    return fields.Integer(load_default=1, validate=validate.Range(min=1, max=200))


class MathGenerateSchema(Schema):
    count = _count()
    domains = fields.List(fields.String(validate=validate.OneOf(MATH_DOMAINS)), load_default=None)
    skills = fields.List(fields.String(validate=validate.OneOf(ALL_MATH_SKILLS)), load_default=None)


class ReadingGenerateSchema(Schema):
    count = _count()
    question_types = fields.List(
        fields.String(validate=validate.OneOf(READING_QUESTION_TYPES)), load_default=None
    )
    passage_types = fields.List(
        fields.String(validate=validate.OneOf(READING_PASSAGE_TYPES)), load_default=None
    )


class TransitionsGenerateSchema(Schema):
    count = _count()
    relationship_type = fields.String(validate=validate.OneOf(RELATIONSHIP_TYPES))
    topic_category = fields.String(validate=validate.OneOf(TOPIC_CATEGORIES))


class ReadingDataGenerateSchema(Schema):
    count = _count()
    data_type = fields.String(load_default=None, validate=validate.OneOf(DATA_TYPES))
    domain = fields.String(load_default=None, validate=validate.OneOf(DATA_DOMAINS))


class GrammarGenerateSchema(Schema):
    count = _count()
    question_types = fields.List(
        fields.String(validate=validate.OneOf(grammar_templates.GRAMMAR_QUESTION_TYPES)), load_default=None
    )
    topic_category = fields.String(validate=validate.OneOf(grammar_templates.TOPIC_CATEGORIES))


class CrossTextGenerateSchema(Schema):
    count = _count()
    relationship_type = fields.String(validate=validate.OneOf(cross_text_templates.RELATIONSHIP_TYPES))
    topic_category = fields.String(validate=validate.OneOf(cross_text_templates.TOPIC_CATEGORIES))


class DLQQuerySchema(Schema):
    pipeline = fields.String(load_default=None, validate=validate.OneOf(PIPELINES))
    limit = fields.Integer(load_default=20, validate=validate.Range(min=1, max=200))

    class Meta:
        unknown = EXCLUDE


class DLQRetrySchema(Schema):
    pipeline = fields.String(required=True, validate=validate.OneOf(PIPELINES[:-1]))
    limit = fields.Integer(load_default=10, validate=validate.Range(min=1, max=100))


class DLQClearSchema(Schema):
    pipeline = fields.String(load_default=None, validate=validate.OneOf(PIPELINES))
    only_succeeded = fields.Boolean(load_default=True)


class ReviewRequestSchema(Schema):
    review_type = fields.String(load_default="initial_verification", validate=validate.OneOf(REVIEW_TYPES))
    skip_auto_improve = fields.Boolean(load_default=False)


class BatchReviewSchema(Schema):
    limit = fields.Integer(load_default=10, validate=validate.Range(min=1, max=100))
    category = fields.String(load_default=None, validate=validate.OneOf(CATEGORIES))
    prioritize_figures = fields.Boolean(load_default=True)


class ImportSchema(Schema):
    document = fields.Raw(required=True)
    dry_run = fields.Boolean(load_default=False)
    skip_existing = fields.Boolean(load_default=False)


class ExportQuerySchema(Schema):
    limit = fields.Integer(load_default=100, validate=validate.Range(min=1, max=500))
    offset = fields.Integer(load_default=0, validate=validate.Range(min=0))

    class Meta:
        unknown = EXCLUDE


class ProblematicQuerySchema(Schema):
    limit = fields.Integer(load_default=50, validate=validate.Range(min=1, max=500))
    min_attempts = fields.Integer(load_default=None, validate=validate.Range(min=1))
    min_error_rate = fields.Float(load_default=None, validate=validate.Range(min=0.0, max=1.0))

    class Meta:
        unknown = EXCLUDE
