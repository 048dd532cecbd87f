from enum import Enum

from tortoise import fields, models


class Sender(str, Enum):
    USER = "user"
    AI = "ai"


class Message(models.Model):
    # append-only: rows are never updated after insert
    id = fields.IntField(pk=True)
    chat_id = fields.IntField()
    sender = fields.CharEnumField(Sender, max_length=8)
    text = fields.TextField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "messages"
