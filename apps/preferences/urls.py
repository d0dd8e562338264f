from django.urls import path

from apps.preferences.views import AppSettingsView, CompanySettingsView

urlpatterns = [
    path("settings/app/", AppSettingsView.as_view(), name="settings-app"),
    path("settings/company/", CompanySettingsView.as_view(), name="settings-company"),
]
