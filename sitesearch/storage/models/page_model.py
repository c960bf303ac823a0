from tortoise import fields, models


class Page(models.Model):
    """
    A fetched page: HTTP code, raw HTML and the extracted plain text.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.Site",
        related_name="pages",
        on_delete=fields.CASCADE,
    )

    path = fields.CharField(max_length=1000, index=True)
    code = fields.IntField()
    content = fields.TextField(default="")
    text = fields.TextField(default="")

    class Meta:
        table = "page"
        unique_together = (("site", "path"),)

    def __str__(self):
        return f"{self.path} [{self.code}]"
