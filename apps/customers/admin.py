from django.contrib import admin

from apps.customers.models import Customer, FollowUp


class FollowUpInline(admin.TabularInline):
    model = FollowUp
    extra = 0
    fields = ("interaction_date", "notes", "next_follow_up_date", "completed", "user")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "stage", "updated_at")
    list_filter = ("stage",)
    search_fields = ("name", "phone", "email")
    inlines = [FollowUpInline]


@admin.register(FollowUp)
class FollowUpAdmin(admin.ModelAdmin):
    list_display = ("customer", "interaction_date", "next_follow_up_date", "completed")
    list_filter = ("completed",)
