import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.exceptions import InvalidState
from apps.common.numbering import next_document_number
from apps.quotations import pricing
from apps.quotations.models import (
    InstallationCharge,
    Milestone,
    MilestoneStatus,
    Quotation,
    QuotationStatus,
    Room,
    RoomAccessory,
    RoomImage,
    RoomProduct,
)

logger = logging.getLogger(__name__)

QUOTATION_VALIDITY_DAYS = 30
DERIVED_FIELDS = [
    "total_selling_price",
    "total_discounted_price",
    "total_installation_charges",
    "gst_amount",
    "final_price",
]


def ensure_editable(quotation):
    if quotation.status == QuotationStatus.CONVERTED:
        raise InvalidState("Converted quotations can no longer be edited.")


def create_quotation(*, customer, defaults, actor=None, **fields):
    """Create a draft quotation, filling unset inputs from ``defaults``."""
    fields.setdefault("global_discount", defaults.default_global_discount)
    fields.setdefault("gst_percentage", defaults.default_gst_percentage)
    if not fields.get("terms"):
        fields["terms"] = defaults.default_terms
    if not fields.get("valid_until"):
        fields["valid_until"] = timezone.localdate() + timedelta(days=QUOTATION_VALIDITY_DAYS)
    fields.pop("status", None)

    with transaction.atomic():
        quotation = Quotation.objects.create(
            quotation_number=next_document_number(Quotation, "quotation_number", "Q"),
            customer=customer,
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
            status=QuotationStatus.DRAFT,
            **fields,
        )
        recalculate_quotation(quotation)
        record_audit(
            actor=actor,
            action="quotation.create",
            entity_type="quotation",
            entity_id=quotation.id,
            payload={"quotation_number": quotation.quotation_number, "customer_id": str(customer.id)},
        )
    return quotation


def room_totals(room):
    return pricing.compute_room_totals(
        room.products.all(), room.accessories.all(), room.installation_charges.all()
    )


def quotation_totals(quotation):
    rooms = quotation.rooms.prefetch_related("products", "accessories", "installation_charges")
    return pricing.compute_quotation_totals(quotation, [room_totals(room) for room in rooms])


def recalculate_room(room):
    totals = room_totals(room)
    room.selling_price = pricing.quantize_stored(totals.selling_price)
    room.discounted_price = pricing.quantize_stored(totals.discounted_price)
    room.installation_amount = pricing.quantize_stored(totals.installation_amount)
    room.save(update_fields=["selling_price", "discounted_price", "installation_amount", "updated_at"])
    return room


def recalculate_quotation(quotation):
    totals = quotation_totals(quotation)
    for field in DERIVED_FIELDS:
        setattr(quotation, field, pricing.quantize_stored(getattr(totals, field)))
    quotation.save(update_fields=[*DERIVED_FIELDS, "updated_at"])
    logger.debug("Recalculated quotation %s final_price=%s", quotation.quotation_number, quotation.final_price)
    return quotation


def refresh_room_totals(room):
    """Recompute ``room`` and then its quotation; call inside the mutating transaction."""
    recalculate_room(room)
    return recalculate_quotation(room.quotation)


def _copy_fields(instance, **overrides):
    data = {
        field.attname: getattr(instance, field.attname)
        for field in instance._meta.concrete_fields
        if not field.primary_key and not getattr(field, "auto_now_add", False) and not getattr(field, "auto_now", False)
    }
    data.update(overrides)
    return data


def duplicate_quotation(source, actor=None, customer=None):
    """Copy ``source`` with its rooms, line items and milestones into a new draft.

    Copied milestones start over as pending.
    """
    with transaction.atomic():
        copy = Quotation.objects.create(
            **_copy_fields(
                source,
                quotation_number=next_document_number(Quotation, "quotation_number", "Q"),
                customer_id=(customer or source.customer).id,
                title=f"{source.title} (Copy)" if source.title else "",
                status=QuotationStatus.DRAFT,
                valid_until=timezone.localdate() + timedelta(days=QUOTATION_VALIDITY_DAYS),
                created_by_id=actor.id if getattr(actor, "is_authenticated", False) else None,
            )
        )
        for room in source.rooms.prefetch_related("products", "accessories", "installation_charges", "images"):
            room_copy = Room.objects.create(**_copy_fields(room, quotation_id=copy.id))
            for product in room.products.all():
                RoomProduct.objects.create(**_copy_fields(product, room_id=room_copy.id))
            for accessory in room.accessories.all():
                RoomAccessory.objects.create(**_copy_fields(accessory, room_id=room_copy.id))
            for charge in room.installation_charges.all():
                InstallationCharge.objects.create(**_copy_fields(charge, room_id=room_copy.id))
            for image in room.images.all():
                RoomImage.objects.create(**_copy_fields(image, room_id=room_copy.id))
            recalculate_room(room_copy)
        for milestone in source.milestones.all():
            Milestone.objects.create(
                **_copy_fields(
                    milestone, quotation_id=copy.id, status=MilestoneStatus.PENDING, completed_date=None
                )
            )
        recalculate_quotation(copy)
        record_audit(
            actor=actor,
            action="quotation.duplicate",
            entity_type="quotation",
            entity_id=copy.id,
            payload={"source_id": str(source.id), "source_number": source.quotation_number},
        )
    return copy


def reorder_rooms(quotation, room_ids):
    rooms = {room.id: room for room in quotation.rooms.all()}
    if set(room_ids) != set(rooms) or len(room_ids) != len(rooms):
        return False
    with transaction.atomic():
        for position, room_id in enumerate(room_ids):
            room = rooms[room_id]
            if room.order != position:
                room.order = position
                room.save(update_fields=["order", "updated_at"])
    return True


def next_milestone_order(quotation):
    current = quotation.milestones.aggregate(highest=Max("order"))["highest"]
    return 0 if current is None else current + 1


def set_milestone_status(milestone, status, completed_date=None, actor=None):
    """Apply ``status``; completion keeps an existing date, anything else clears it."""
    previous = milestone.status
    milestone.status = status
    if status == MilestoneStatus.COMPLETED:
        if milestone.completed_date is None:
            milestone.completed_date = completed_date or timezone.localdate()
    else:
        milestone.completed_date = None
    with transaction.atomic():
        milestone.save(update_fields=["status", "completed_date", "updated_at"])
        record_audit(
            actor=actor,
            action="milestone.status",
            entity_type="quotation",
            entity_id=milestone.quotation_id,
            payload={
                "milestone_id": str(milestone.id),
                "from": previous,
                "to": str(status),
                "completed_date": str(milestone.completed_date) if milestone.completed_date else None,
            },
        )
    return milestone


def reorder_milestones(quotation, milestone_ids):
    milestones = {milestone.id: milestone for milestone in quotation.milestones.all()}
    if set(milestone_ids) != set(milestones) or len(milestone_ids) != len(milestones):
        return False
    with transaction.atomic():
        for position, milestone_id in enumerate(milestone_ids):
            milestone = milestones[milestone_id]
            if milestone.order != position:
                milestone.order = position
                milestone.save(update_fields=["order", "updated_at"])
    return True
