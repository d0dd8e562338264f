from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.sales.models import Invoice, InvoiceStatus

OPEN_STATUSES = [InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID]


class Command(BaseCommand):
    help = "Mark pending or partially paid invoices past their due date as overdue."

    def handle(self, *args, **options):
        overdue_count = 0
        today = timezone.localdate()
        for invoice in Invoice.objects.filter(status__in=OPEN_STATUSES, due_date__lt=today):
            with transaction.atomic():
                locked = Invoice.objects.select_for_update().get(pk=invoice.pk)
                if locked.status not in OPEN_STATUSES or locked.due_date >= today:
                    continue
                previous = locked.status
                locked.status = InvoiceStatus.OVERDUE
                locked.save(update_fields=["status", "updated_at"])
                record_audit(
                    actor=locked.created_by,
                    action="invoice.overdue.auto",
                    entity_type="invoice",
                    entity_id=locked.id,
                    payload={"from": previous, "due_date": locked.due_date.isoformat()},
                )
                overdue_count += 1

        self.stdout.write(self.style.SUCCESS(f"Overdue invoices: {overdue_count}"))
