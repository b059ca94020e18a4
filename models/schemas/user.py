from marshmallow import Schema, fields, pre_load, validates, validate, ValidationError, EXCLUDE

PASSWORD_MIN_LENGTH = 8


class _CredentialsSchema(Schema):
    """Email is trimmed and lower-cased before validation."""

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = dict(data, email=data["email"].strip().lower())
        return data


class UserCreateSchema(_CredentialsSchema):
    f_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    l_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")


class UserLoginSchema(_CredentialsSchema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class UserOutSchema(Schema):
    id = fields.String(dump_only=True)
    f_name = fields.String(allow_none=True)
    l_name = fields.String(allow_none=True)
    email = fields.Email()
    roles = fields.List(fields.String())
    created_at = fields.DateTime(dump_only=True)
