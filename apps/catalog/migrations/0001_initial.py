import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AccessoryCatalog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("handle", "Handle"),
                            ("kitchen", "Kitchen"),
                            ("light", "Light"),
                            ("wardrobe", "Wardrobe"),
                        ],
                        max_length=20,
                    ),
                ),
                ("code", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("selling_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("kitchen_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("wardrobe_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("size", models.CharField(blank=True, max_length=100)),
                ("image_url", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["category", "code"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("selling_price__gte", 0)),
                        name="accessory_price_non_negative",
                    ),
                ],
            },
        ),
    ]
