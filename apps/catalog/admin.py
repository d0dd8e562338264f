from django.contrib import admin

from apps.catalog.models import AccessoryCatalog


@admin.register(AccessoryCatalog)
class AccessoryCatalogAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "category", "selling_price", "size", "updated_at")
    list_filter = ("category",)
    search_fields = ("code", "name")
