from django.utils import timezone


def next_document_number(model, field, prefix, width=3, year=None):
    """Return the next ``<prefix>-<year>-<seq>`` number for ``model.field``.

    Must run inside the transaction that inserts the row; the unique
    constraint on ``field`` rejects a concurrent duplicate.
    """
    year = year or timezone.localdate().year
    stem = f"{prefix}-{year}-"
    existing = model.objects.filter(**{f"{field}__startswith": stem}).values_list(field, flat=True)
    sequence = max((int(number[len(stem):]) for number in existing if number[len(stem):].isdigit()), default=0)
    return f"{stem}{sequence + 1:0{width}d}"
