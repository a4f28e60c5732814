from marshmallow import Schema, fields, pre_load, validates_schema, ValidationError, validate


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class RegisterSchema(Schema):
    username = fields.String(required=True, validate=validate.Length(min=3, max=50))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))
    confirm_password = fields.String(required=True, load_only=True)
    first_name = fields.String(required=True, validate=validate.Length(min=1, max=128))
    last_name = fields.String(required=True, validate=validate.Length(min=1, max=128))
    document_type = fields.String(load_default="CC")
    document_number = fields.String(required=True, validate=validate.Length(min=1, max=32))
    phone = fields.String(allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if isinstance(data.get("username"), str):
                data["username"] = data["username"].strip()
        return data

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if data.get("password") != data.get("confirm_password"):
            raise ValidationError("Passwords do not match.", field_name="confirm_password")


class LoginSchema(Schema):
    username = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class RefreshTokenSchema(Schema):
    token = fields.String(required=True, validate=validate.Length(min=1))
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class CheckTokenSchema(Schema):
    token = fields.String(required=True, validate=validate.Length(min=1))


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))
    confirm_new_password = fields.String(required=True, load_only=True)

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if data.get("new_password") != data.get("confirm_new_password"):
            raise ValidationError("New passwords do not match.", field_name="confirm_new_password")


class UserInfoSchema(Schema):
    id = fields.Integer()
    username = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    roles = fields.List(fields.String())


class RoleRedirectSchema(Schema):
    user_id = fields.Integer()
    username = fields.String()
    is_admin = fields.Boolean()
    redirect_url = fields.String()


class AuthResponseSchema(Schema):
    token = fields.String()
    refresh_token = fields.String()
    expiration = fields.DateTime()
    user = fields.Nested(UserInfoSchema)
    role_redirection = fields.Nested(RoleRedirectSchema)


class TokenValidationSchema(Schema):
    is_valid = fields.Boolean()
    user_id = fields.Integer(allow_none=True)
    username = fields.String(allow_none=True)
    remaining_seconds = fields.Integer(allow_none=True)
