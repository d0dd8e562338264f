import django.core.validators
import django.db.models.deletion
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


def derived_amount():
    return models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=16)


def line_item_fields():
    return [
        ("name", models.CharField(max_length=255)),
        ("description", models.TextField(blank=True)),
        (
            "quantity",
            models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)]),
        ),
        (
            "selling_price",
            models.DecimalField(
                decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)]
            ),
        ),
        ("discount", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
        (
            "discount_type",
            models.CharField(
                choices=[("percentage", "Percentage"), ("fixed", "Fixed")],
                default="percentage",
                max_length=20,
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        ("customers", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Quotation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quotation_number", models.CharField(max_length=30, unique=True)),
                ("title", models.CharField(blank=True, max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("saved", "Saved"),
                            ("sent", "Sent"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("expired", "Expired"),
                            ("converted", "Converted"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("global_discount", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5)),
                (
                    "installation_handling",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12),
                ),
                ("gst_percentage", models.DecimalField(decimal_places=2, default=Decimal("18"), max_digits=5)),
                ("valid_until", models.DateField(blank=True, null=True)),
                ("terms", models.TextField(blank=True)),
                ("total_selling_price", derived_amount()),
                ("total_discounted_price", derived_amount()),
                ("total_installation_charges", derived_amount()),
                ("gst_amount", derived_amount()),
                ("final_price", derived_amount()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="quotations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="quotations",
                        to="customers.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="quotation_status_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("global_discount__gte", 0), ("global_discount__lte", 100)),
                        name="quotation_global_discount_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("gst_percentage__gte", 0)),
                        name="quotation_gst_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("installation_handling__gte", 0)),
                        name="quotation_handling_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("order", models.PositiveIntegerField(default=0)),
                ("selling_price", derived_amount()),
                ("discounted_price", derived_amount()),
                ("installation_amount", derived_amount()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "quotation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rooms",
                        to="quotations.quotation",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "created_at"],
            },
        ),
        migrations.CreateModel(
            name="RoomProduct",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                *line_item_fields(),
                ("discounted_price", derived_amount()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="products",
                        to="quotations.room",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="room_product_quantity_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RoomAccessory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                *line_item_fields(),
                ("discounted_price", derived_amount()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "catalog_item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="catalog.accessorycatalog",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="accessories",
                        to="quotations.room",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "room accessories",
                "ordering": ["created_at"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="room_accessory_quantity_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InstallationCharge",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("cabinet_type", models.CharField(max_length=100)),
                ("width_mm", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=10)),
                ("height_mm", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=10)),
                ("price_per_sqft", models.DecimalField(decimal_places=2, default=Decimal("130"), max_digits=10)),
                ("area_sqft", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=12)),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="installation_charges",
                        to="quotations.room",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="RoomImage",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("image_url", models.CharField(max_length=500)),
                ("caption", models.CharField(blank=True, max_length=255)),
                ("order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="quotations.room",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "created_at"],
            },
        ),
    ]
