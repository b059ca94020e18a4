from marshmallow import Schema, fields, EXCLUDE


class RefreshRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(load_default=None)


class TokenPairOutSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    family_id = fields.String()
    jti = fields.String()
    token_type = fields.Constant("bearer")
    expires_in = fields.Integer()


class TokenRecordOutSchema(Schema):
    # fingerprint_hash is deliberately not exposed
    id = fields.String()
    user_id = fields.String()
    family_id = fields.String()
    jti = fields.String()
    used = fields.Boolean()
    revoked = fields.Boolean()
    state = fields.Function(lambda obj: obj.state.value)
    expires_at = fields.DateTime()
    created_at = fields.DateTime()
