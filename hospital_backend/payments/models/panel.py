# payments/models/panel.py

from django.db import models


class Panel(models.Model):
    """
    Billing scope a payment is recorded under: the pharmacy counter, a
    corporate payer, an insurance panel, a hospital department.

    Payment references are unique per panel, not globally.
    """

    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def clean(self):
        self.code = (self.code or "").strip().upper()
        self.name = (self.name or "").strip()

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} | {self.name}"
