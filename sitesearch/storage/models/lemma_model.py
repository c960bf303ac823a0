from tortoise import fields, models


class Lemma(models.Model):
    """
    A lemma of one site. ``frequency`` is the number of the site's pages
    containing it.
    """
    id = fields.IntField(pk=True)

    site = fields.ForeignKeyField(
        "models.Site",
        related_name="lemmas",
        on_delete=fields.CASCADE,
    )

    lemma = fields.CharField(max_length=255)
    frequency = fields.IntField(default=0)

    class Meta:
        table = "lemma"
        unique_together = (("site", "lemma"),)
