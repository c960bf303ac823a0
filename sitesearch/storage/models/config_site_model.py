from tortoise import fields, models


class ConfigSite(models.Model):
    """
    A registered crawl target.
    """
    id = fields.IntField(pk=True)

    name = fields.CharField(max_length=255, unique=True)
    url = fields.CharField(max_length=255, unique=True)

    class Meta:
        table = "config_site"

    def __str__(self):
        return f"{self.name} ({self.url})"
