from django.contrib import admin

from apps.quotations.models import (
    InstallationCharge,
    Milestone,
    Quotation,
    Room,
    RoomAccessory,
    RoomImage,
    RoomProduct,
)
from apps.quotations.services import recalculate_quotation, recalculate_room, refresh_room_totals


class RoomInline(admin.TabularInline):
    model = Room
    extra = 0
    fields = ("name", "order", "selling_price", "discounted_price", "installation_amount")
    readonly_fields = ("selling_price", "discounted_price", "installation_amount")


class RoomProductInline(admin.TabularInline):
    model = RoomProduct
    extra = 0
    readonly_fields = ("discounted_price",)


class RoomAccessoryInline(admin.TabularInline):
    model = RoomAccessory
    extra = 0
    readonly_fields = ("discounted_price",)


class InstallationChargeInline(admin.TabularInline):
    model = InstallationCharge
    extra = 0
    readonly_fields = ("area_sqft",)


class RoomImageInline(admin.TabularInline):
    model = RoomImage
    extra = 0


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    fields = ("title", "start_date", "end_date", "status", "completed_date", "order")


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ("quotation_number", "customer", "status", "final_price", "valid_until", "created_at")
    list_filter = ("status",)
    search_fields = ("quotation_number", "title", "customer__name")
    readonly_fields = (
        "total_selling_price",
        "total_discounted_price",
        "total_installation_charges",
        "gst_amount",
        "final_price",
    )
    inlines = [RoomInline, MilestoneInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        for room in form.instance.rooms.all():
            recalculate_room(room)
        recalculate_quotation(form.instance)


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("name", "quotation", "order", "selling_price", "discounted_price")
    search_fields = ("name", "quotation__quotation_number")
    inlines = [RoomProductInline, RoomAccessoryInline, InstallationChargeInline, RoomImageInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        refresh_room_totals(form.instance)
