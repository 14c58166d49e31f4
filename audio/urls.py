from django.urls import path
from .views import RetriggerMissingView, StorageEventView

urlpatterns = [
    path("events/storage/", StorageEventView.as_view(), name="storage_event"),
    path("maintenance/retrigger/", RetriggerMissingView.as_view(), name="retrigger_missing"),
]
