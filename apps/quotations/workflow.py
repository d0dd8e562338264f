import logging

from django.db import transaction
from django.db.models import Count

from apps.audit.services import record_audit
from apps.quotations.errors import InvalidTransition, ValidationFailed, ValidationIssue
from apps.quotations.models import Quotation, QuotationStatus, RoomAccessory

logger = logging.getLogger(__name__)


def validate_for_save(quotation):
    """Collect every problem that blocks saving ``quotation``; empty means valid."""
    rooms = quotation.rooms.annotate(
        product_count=Count("products", distinct=True),
        accessory_count=Count("accessories", distinct=True),
        installation_count=Count("installation_charges", distinct=True),
    ).order_by("order", "created_at")

    issues = []
    if not rooms:
        issues.append(ValidationIssue("room_zero_value", "Quotation must have at least one room."))

    for room in rooms:
        label = room.name or "Untitled"
        if not room.selling_price:
            issues.append(ValidationIssue("room_zero_value", f'Room "{label}" has a zero value.', room.id, label))
        if not room.product_count:
            issues.append(
                ValidationIssue("missing_product", f'Room "{label}" does not have any products.', room.id, label)
            )
        if not room.accessory_count:
            issues.append(
                ValidationIssue("missing_accessory", f'Room "{label}" does not have any accessories.', room.id, label)
            )
        if not room.installation_count:
            issues.append(
                ValidationIssue(
                    "missing_installation", f'Room "{label}" does not have installation charges.', room.id, label
                )
            )

    if not quotation.installation_handling:
        issues.append(ValidationIssue("missing_handling_charge", "Handling charge must be entered."))
    return issues


def accessory_warnings(quotation, required_accessories):
    names = [
        name.lower()
        for name in RoomAccessory.objects.filter(room__quotation=quotation).values_list("name", flat=True)
    ]
    missing = [required for required in required_accessories if not any(required in name for name in names)]
    if not missing:
        return []
    return [
        {
            "type": "check_accessories",
            "message": "Please check that the following required accessories are added:",
            "accessories": missing,
        }
    ]


# (from, to) -> guard. A guard returns a list of issues; an empty list lets the move through.
# "converted" never appears: only the conversion services set it.
TRANSITIONS = {
    (QuotationStatus.DRAFT, QuotationStatus.SAVED): validate_for_save,
    (QuotationStatus.SAVED, QuotationStatus.DRAFT): None,
    (QuotationStatus.SAVED, QuotationStatus.SENT): None,
    (QuotationStatus.SAVED, QuotationStatus.APPROVED): validate_for_save,
    (QuotationStatus.SAVED, QuotationStatus.REJECTED): None,
    (QuotationStatus.SAVED, QuotationStatus.EXPIRED): None,
    (QuotationStatus.SENT, QuotationStatus.SAVED): None,
    (QuotationStatus.SENT, QuotationStatus.REJECTED): None,
    (QuotationStatus.SENT, QuotationStatus.EXPIRED): None,
    (QuotationStatus.APPROVED, QuotationStatus.REJECTED): None,
    (QuotationStatus.APPROVED, QuotationStatus.EXPIRED): None,
    (QuotationStatus.REJECTED, QuotationStatus.DRAFT): None,
    (QuotationStatus.EXPIRED, QuotationStatus.DRAFT): None,
}


def allowed_transitions(status):
    return [str(to) for (frm, to) in TRANSITIONS if frm == status]


def transition_status(quotation, new_status, actor=None):
    """Move ``quotation`` to ``new_status``.

    Returns the updated quotation, or an ``InvalidTransition`` /
    ``ValidationFailed`` value; on failure the stored status is untouched.
    """
    with transaction.atomic():
        locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
        current = locked.status
        try:
            key = (QuotationStatus(current), QuotationStatus(new_status))
        except ValueError:
            key = None
        if key not in TRANSITIONS:
            logger.info("Rejected quotation %s transition %s -> %s", locked.quotation_number, current, new_status)
            return InvalidTransition(current=current, requested=str(new_status))

        guard = TRANSITIONS[key]
        if guard is not None:
            issues = guard(locked)
            if issues:
                logger.info(
                    "Quotation %s failed %s -> %s checks with %d issues",
                    locked.quotation_number,
                    current,
                    new_status,
                    len(issues),
                )
                return ValidationFailed(issues=tuple(issues), requested=str(new_status))

        locked.status = new_status
        locked.save(update_fields=["status", "updated_at"])
        record_audit(
            actor=actor,
            action="quotation.status",
            entity_type="quotation",
            entity_id=locked.id,
            payload={"from": current, "to": str(new_status)},
        )
    return locked
