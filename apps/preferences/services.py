from dataclasses import dataclass
from decimal import Decimal

from apps.preferences.models import AppSettings


@dataclass(frozen=True)
class QuotationDefaults:
    default_global_discount: Decimal = Decimal("0")
    default_gst_percentage: Decimal = Decimal("18")
    default_terms: str = ""


def get_quotation_defaults():
    settings = AppSettings.load()
    return QuotationDefaults(
        default_global_discount=settings.default_global_discount,
        default_gst_percentage=settings.default_gst_percentage,
        default_terms=settings.default_terms,
    )


def get_required_accessories():
    return AppSettings.load().required_accessory_keywords()
