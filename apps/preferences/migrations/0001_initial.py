from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CompanySettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(default="Interior Studio", max_length=255)),
                ("address", models.TextField(blank=True)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("website", models.CharField(blank=True, max_length=255)),
                ("logo_url", models.CharField(blank=True, max_length=500)),
                ("tax_id", models.CharField(blank=True, max_length=50)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "Company settings",
            },
        ),
        migrations.CreateModel(
            name="AppSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "default_global_discount",
                    models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5),
                ),
                (
                    "default_gst_percentage",
                    models.DecimalField(decimal_places=2, default=Decimal("18"), max_digits=5),
                ),
                (
                    "default_terms",
                    models.TextField(
                        blank=True,
                        default=(
                            "1. All prices are valid for 30 days from quotation date.\n"
                            "2. 50% advance payment required to start work.\n"
                            "3. Balance payment due upon completion.\n"
                            "4. Material colors may vary slightly from samples.\n"
                            "5. Changes to design after approval may incur additional charges."
                        ),
                    ),
                ),
                (
                    "receipt_terms",
                    models.TextField(
                        blank=True,
                        default=(
                            "1. Receipt is valid only when payment is confirmed.\n"
                            "2. All payments are non-refundable unless otherwise specified.\n"
                            "3. Please retain this receipt for your records and warranty claims.\n"
                            "4. For any disputes regarding payment, please contact us within 7 days of receipt."
                        ),
                    ),
                ),
                (
                    "required_accessories",
                    models.CharField(
                        blank=True,
                        default="skirting,handles,sliding mechanism,t profile",
                        max_length=500,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "App settings",
            },
        ),
    ]
