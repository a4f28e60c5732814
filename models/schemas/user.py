from marshmallow import Schema, fields, pre_load, validate


class RoleAssignSchema(Schema):
    role_name = fields.String(required=True, validate=validate.Length(min=1, max=64))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("role_name"), str):
            data = dict(data)
            data["role_name"] = data["role_name"].strip()
        return data


class UserOutSchema(Schema):
    id = fields.Integer()
    username = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    is_active = fields.Boolean()
    created_at = fields.DateTime()
