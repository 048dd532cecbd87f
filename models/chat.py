from tortoise import fields, models

class Chat(models.Model):
    id = fields.IntField(pk=True)
    user_id = fields.IntField()
    title = fields.CharField(max_length=255, default="New Chat")
    last_message = fields.TextField(null=True)
    last_message_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "chats"
