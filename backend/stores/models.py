from django.db import models


class Store(models.Model):
    """A shop owning its own catalog and orders"""
    name = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'stores'
        ordering = ['name']
