from marshmallow import Schema, fields, pre_load, validate, EXCLUDE


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)
    # strength policy lives in AuthFlow so it can report WEAK_SECRET
    password = fields.String(required=True, load_only=True)
    phone = fields.String(allow_none=True, validate=validate.Length(max=32))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if "name" in data:
                data["name"] = _strip(data["name"])
        return data


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class RefreshSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(required=True)


class ProfileUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(validate=validate.Length(min=1, max=255))
    phone = fields.String(validate=validate.Length(max=32))
    address = fields.Dict()
    profile = fields.Dict()
    preferences = fields.Dict()

    @pre_load
    def drop_blank(self, data, **kwargs):
        # blank name / phone means "leave unchanged"
        if isinstance(data, dict):
            data = {k: _strip(v) for k, v in data.items()}
            for key in ("name", "phone"):
                if data.get(key) in ("", None):
                    data.pop(key, None)
        return data


class RoleUpdateSchema(Schema):
    role = fields.String(required=True)


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    name = fields.String()
    phone = fields.String(allow_none=True)
    role = fields.String()
    is_active = fields.Boolean()
    points = fields.Integer()
    address = fields.Dict(allow_none=True)
    profile = fields.Dict(allow_none=True)
    preferences = fields.Dict(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class LeaderboardEntrySchema(Schema):
    rank = fields.Integer()
    name = fields.String()
    avatar = fields.String(allow_none=True)
    points = fields.Integer()
    level = fields.Integer()
