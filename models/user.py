from tortoise import fields, models

DEFAULT_CREDITS = 1250

class User(models.Model):
    id = fields.IntField(pk=True)
    username = fields.CharField(max_length=150, unique=True)
    password = fields.CharField(max_length=255, null=True)  # null for OAuth-created users
    email = fields.CharField(max_length=255, unique=True)
    role = fields.CharField(max_length=32, default="user")
    credits = fields.IntField(default=DEFAULT_CREDITS)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "users"
