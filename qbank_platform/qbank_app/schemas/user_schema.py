"""Schemas for user-related payloads."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

ROLE_CHOICES = ("student", "admin")
CATEGORY_CHOICES = ("reading_writing", "math")


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=8))
    username = fields.String(validate=validate.Length(min=3, max=64))
    name = fields.String(validate=validate.Length(max=128))
    target_score = fields.Integer(allow_none=True, validate=validate.Range(min=400, max=1600))
    test_date = fields.Date(allow_none=True)

    class Meta:
        unknown = EXCLUDE


class LoginSchema(Schema):
    identifier = fields.String(required=True)
    password = fields.String(required=True)


class UserPreferenceSchema(Schema):
    daily_question_target = fields.Integer(dump_only=True)
    preferred_categories = fields.List(fields.String(validate=validate.OneOf(CATEGORY_CHOICES)))


class UserSchema(Schema):
    id = fields.Integer(dump_only=True)
    email = fields.Email(dump_only=True)
    username = fields.String(dump_only=True)
    name = fields.String(dump_only=True)
    role = fields.String(dump_only=True)
    target_score = fields.Integer(dump_only=True)
    test_date = fields.Date(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    last_active_at = fields.DateTime(dump_only=True)
    preference = fields.Nested(UserPreferenceSchema, dump_only=True)
