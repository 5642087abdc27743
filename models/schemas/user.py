from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

from models.user import UserRole


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class _LenientSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(_LenientSchema):
    username = fields.String(required=True, validate=validate.Length(min=1, max=64))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))
    role = fields.String(
        load_default=UserRole.USER.value,
        validate=validate.OneOf([r.value for r in UserRole]),
    )

    @pre_load
    def normalize(self, data, **kwargs):
        # username stays case-sensitive; only surrounding whitespace is dropped
        if isinstance(data, dict):
            data = dict(data)
            if "username" in data:
                data["username"] = _strip(data["username"])
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if data.get("role") is None:
                data.pop("role", None)
        return data


class LoginSchema(_LenientSchema):
    username = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "username" in data:
            data = dict(data)
            data["username"] = _strip(data["username"])
        return data


class RefreshSchema(_LenientSchema):
    refresh_token = fields.String(data_key="refreshToken", required=True, validate=validate.Length(min=1))


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    email = fields.String()
    role = fields.Function(lambda u: u.role.value if isinstance(u.role, UserRole) else u.role)


class ProfileSchema(UserOutSchema):
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
