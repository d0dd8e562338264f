from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.quotations.errors import QuotationError
from apps.quotations.models import Quotation, QuotationStatus
from apps.quotations.workflow import transition_status

EXPIRABLE_STATUSES = [QuotationStatus.SAVED, QuotationStatus.SENT, QuotationStatus.APPROVED]


class Command(BaseCommand):
    help = "Expire saved, sent or approved quotations whose valid_until date has passed."

    def handle(self, *args, **options):
        expired_count = 0
        skipped_count = 0
        queryset = Quotation.objects.filter(status__in=EXPIRABLE_STATUSES, valid_until__lt=timezone.localdate())
        for quotation in queryset.iterator():
            result = transition_status(quotation, QuotationStatus.EXPIRED)
            if isinstance(result, QuotationError):
                skipped_count += 1
                continue
            expired_count += 1

        self.stdout.write(self.style.SUCCESS(f"Expired quotations: {expired_count} skipped={skipped_count}"))
