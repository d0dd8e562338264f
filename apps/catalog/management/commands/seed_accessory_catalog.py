from decimal import Decimal

from django.core.management.base import BaseCommand

from apps.catalog.models import AccessoryCatalog

SAMPLE_ITEMS = [
    {
        "category": "handle",
        "code": "LH-101",
        "name": "Modern Chrome Pull Handle",
        "description": "Sleek chrome finish handle for modern cabinet designs",
        "selling_price": Decimal("850"),
        "kitchen_price": Decimal("850"),
        "wardrobe_price": Decimal("850"),
        "size": "128mm",
    },
    {
        "category": "handle",
        "code": "LH-203",
        "name": "Brushed Gold Cabinet Handle",
        "description": "Elegant brushed gold finish for luxury cabinets",
        "selling_price": Decimal("1200"),
        "kitchen_price": Decimal("1200"),
        "wardrobe_price": Decimal("1200"),
        "size": "160mm",
    },
    {
        "category": "kitchen",
        "code": "LK-305",
        "name": "Pull-Out Spice Rack",
        "description": "Space-saving pull-out spice rack for kitchen cabinets",
        "selling_price": Decimal("3500"),
        "kitchen_price": Decimal("3500"),
        "wardrobe_price": None,
        "size": "400mm width",
    },
    {
        "category": "light",
        "code": "LL-405",
        "name": "LED Cabinet Light Strip",
        "description": "Energy-efficient LED strip for under-cabinet lighting",
        "selling_price": Decimal("1800"),
        "kitchen_price": Decimal("1800"),
        "wardrobe_price": Decimal("1800"),
        "size": "1m",
    },
    {
        "category": "wardrobe",
        "code": "LW-503",
        "name": "Pull-Out Trouser Rack",
        "description": "Extendable rack for organizing trousers and pants",
        "selling_price": Decimal("2600"),
        "kitchen_price": None,
        "wardrobe_price": Decimal("2600"),
        "size": "600mm width",
    },
]


class Command(BaseCommand):
    help = "Seed the accessory catalog with the standard handle, kitchen, light and wardrobe items."

    def handle(self, *args, **options):
        created_items = 0
        for item in SAMPLE_ITEMS:
            defaults = {key: value for key, value in item.items() if key != "code"}
            _, created = AccessoryCatalog.objects.get_or_create(code=item["code"], defaults=defaults)
            if created:
                created_items += 1

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed accessory catalog completed. items_created={created_items} total={AccessoryCatalog.objects.count()}"
            )
        )
