"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    full_name = fields.String(load_default=None, validate=validate.Length(max=100))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Optional JSON body for refresh/logout when cookies are unavailable."""

    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(load_default=None)


class TokenPairSchema(Schema):
    """Response payload containing a freshly issued token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="bearer")


class UserSchema(Schema):
    """Public representation of a principal."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    full_name = fields.String(allow_none=True)
