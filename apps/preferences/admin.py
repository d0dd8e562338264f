from django.contrib import admin

from apps.preferences.models import AppSettings, CompanySettings


@admin.register(CompanySettings)
class CompanySettingsAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "updated_at")


@admin.register(AppSettings)
class AppSettingsAdmin(admin.ModelAdmin):
    list_display = ("default_global_discount", "default_gst_percentage", "updated_at")
