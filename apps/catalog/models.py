import uuid

from django.db import models


class AccessoryCategory(models.TextChoices):
    HANDLE = "handle", "Handle"
    KITCHEN = "kitchen", "Kitchen"
    LIGHT = "light", "Light"
    WARDROBE = "wardrobe", "Wardrobe"


class AccessoryCatalog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.CharField(max_length=20, choices=AccessoryCategory.choices)
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    selling_price = models.DecimalField(max_digits=12, decimal_places=2)
    kitchen_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    wardrobe_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    size = models.CharField(max_length=100, blank=True)
    image_url = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category", "code"]
        constraints = [
            models.CheckConstraint(condition=models.Q(selling_price__gte=0), name="accessory_price_non_negative"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def price_for(self, room_name):
        """Pick the kitchen or wardrobe price when the room name calls for it."""
        lowered = (room_name or "").lower()
        if "kitchen" in lowered and self.kitchen_price is not None:
            return self.kitchen_price
        if "wardrobe" in lowered and self.wardrobe_price is not None:
            return self.wardrobe_price
        return self.selling_price
