from decimal import Decimal

from django.db import models

DEFAULT_TERMS = (
    "1. All prices are valid for 30 days from quotation date.\n"
    "2. 50% advance payment required to start work.\n"
    "3. Balance payment due upon completion.\n"
    "4. Material colors may vary slightly from samples.\n"
    "5. Changes to design after approval may incur additional charges."
)
DEFAULT_RECEIPT_TERMS = (
    "1. Receipt is valid only when payment is confirmed.\n"
    "2. All payments are non-refundable unless otherwise specified.\n"
    "3. Please retain this receipt for your records and warranty claims.\n"
    "4. For any disputes regarding payment, please contact us within 7 days of receipt."
)
DEFAULT_REQUIRED_ACCESSORIES = "skirting,handles,sliding mechanism,t profile"


class SingletonModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj


class CompanySettings(SingletonModel):
    name = models.CharField(max_length=255, default="Interior Studio")
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    website = models.CharField(max_length=255, blank=True)
    logo_url = models.CharField(max_length=500, blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Company settings"

    def __str__(self):
        return self.name


class AppSettings(SingletonModel):
    default_global_discount = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    default_gst_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("18"))
    default_terms = models.TextField(blank=True, default=DEFAULT_TERMS)
    receipt_terms = models.TextField(blank=True, default=DEFAULT_RECEIPT_TERMS)
    required_accessories = models.CharField(max_length=500, blank=True, default=DEFAULT_REQUIRED_ACCESSORIES)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "App settings"

    def __str__(self):
        return "App settings"

    def required_accessory_keywords(self):
        return [item.strip().lower() for item in self.required_accessories.split(",") if item.strip()]
