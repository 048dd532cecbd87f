from tortoise import fields, models

from models.user import User

class Organization(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=255, default="Default Org")
    owner: fields.ForeignKeyRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="organizations"
    )
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "organizations"
