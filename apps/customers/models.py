import uuid

from django.db import models
from django.utils import timezone


class CustomerStage(models.TextChoices):
    NEW = "new", "New"
    PIPELINE = "pipeline", "Pipeline"
    COLD = "cold", "Cold"
    WARM = "warm", "Warm"
    BOOKED = "booked", "Booked"
    LOST = "lost", "Lost"


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50)
    address = models.TextField(blank=True)
    stage = models.CharField(max_length=20, choices=CustomerStage.choices, default=CustomerStage.NEW)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["name"], name="customer_name_lookup_idx"),
            models.Index(fields=["stage"], name="customer_stage_idx"),
        ]

    def __str__(self):
        return self.name


class FollowUpQuerySet(models.QuerySet):
    def pending(self, today=None):
        today = today or timezone.localdate()
        return self.filter(completed=False, next_follow_up_date__lte=today).order_by("next_follow_up_date", "created_at")


class FollowUp(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="follow_ups")
    notes = models.TextField()
    interaction_date = models.DateField(default=timezone.localdate)
    next_follow_up_date = models.DateField(null=True, blank=True)
    completed = models.BooleanField(default=False)
    user = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL, related_name="follow_ups")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = FollowUpQuerySet.as_manager()

    class Meta:
        ordering = ["-interaction_date", "-created_at"]
