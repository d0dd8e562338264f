import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from apps.quotations import pricing


class QuotationStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SAVED = "saved", "Saved"
    SENT = "sent", "Sent"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    EXPIRED = "expired", "Expired"
    CONVERTED = "converted", "Converted"


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed"


class MilestoneStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    DELAYED = "delayed", "Delayed"


def derived_amount_field():
    return models.DecimalField(max_digits=16, decimal_places=4, default=Decimal("0"))


class Quotation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    quotation_number = models.CharField(max_length=30, unique=True)
    customer = models.ForeignKey("customers.Customer", on_delete=models.PROTECT, related_name="quotations")
    title = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=QuotationStatus.choices, default=QuotationStatus.DRAFT)
    global_discount = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    installation_handling = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    gst_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("18"))
    valid_until = models.DateField(null=True, blank=True)
    terms = models.TextField(blank=True)
    total_selling_price = derived_amount_field()
    total_discounted_price = derived_amount_field()
    total_installation_charges = derived_amount_field()
    gst_amount = derived_amount_field()
    final_price = derived_amount_field()
    created_by = models.ForeignKey(
        "accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="quotations"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="quotation_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(global_discount__gte=0, global_discount__lte=100),
                name="quotation_global_discount_range",
            ),
            models.CheckConstraint(condition=models.Q(gst_percentage__gte=0), name="quotation_gst_non_negative"),
            models.CheckConstraint(
                condition=models.Q(installation_handling__gte=0), name="quotation_handling_non_negative"
            ),
        ]

    def __str__(self):
        return self.quotation_number

    @property
    def is_converted(self):
        return self.status == QuotationStatus.CONVERTED


class Room(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name="rooms")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)
    selling_price = derived_amount_field()
    discounted_price = derived_amount_field()
    installation_amount = derived_amount_field()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "created_at"]

    def __str__(self):
        return self.name


class LineItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discounted_price = derived_amount_field()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["created_at"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.discounted_price = pricing.quantize_stored(
            pricing.compute_line_discounted_price(self.selling_price, self.discount, self.discount_type)
        )
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "discounted_price" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "discounted_price"]
        super().save(*args, **kwargs)

    @property
    def line_total(self):
        return self.discounted_price * self.quantity


class RoomProduct(LineItem):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="products")

    class Meta(LineItem.Meta):
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="room_product_quantity_positive"),
        ]


class RoomAccessory(LineItem):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="accessories")
    catalog_item = models.ForeignKey(
        "catalog.AccessoryCatalog", null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )

    class Meta(LineItem.Meta):
        verbose_name_plural = "room accessories"
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="room_accessory_quantity_positive"),
        ]


class InstallationCharge(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="installation_charges")
    cabinet_type = models.CharField(max_length=100)
    width_mm = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    height_mm = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    price_per_sqft = models.DecimalField(max_digits=10, decimal_places=2, default=pricing.DEFAULT_PRICE_PER_SQFT)
    area_sqft = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal("0"))
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.cabinet_type} ({self.amount})"

    def save(self, *args, **kwargs):
        self.area_sqft = pricing.quantize_stored(pricing.compute_installation_area(self.width_mm, self.height_mm))
        super().save(*args, **kwargs)


class RoomImage(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="images")
    image_url = models.CharField(max_length=500)
    caption = models.CharField(max_length=255, blank=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "created_at"]


class Milestone(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name="milestones")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=MilestoneStatus.choices, default=MilestoneStatus.PENDING)
    completed_date = models.DateField(null=True, blank=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gte=models.F("start_date")), name="milestone_end_after_start"
            ),
        ]

    def __str__(self):
        return self.title
