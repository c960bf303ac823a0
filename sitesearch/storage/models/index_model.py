from tortoise import fields, models


class IndexEntry(models.Model):
    """
    TF-IDF rank of a lemma on a page.
    """
    id = fields.IntField(pk=True)

    page = fields.ForeignKeyField(
        "models.Page",
        related_name="index_entries",
        on_delete=fields.CASCADE,
    )
    lemma = fields.ForeignKeyField(
        "models.Lemma",
        related_name="index_entries",
        on_delete=fields.CASCADE,
    )

    rank = fields.FloatField()

    class Meta:
        table = "index_table"
        unique_together = (("page", "lemma"),)
