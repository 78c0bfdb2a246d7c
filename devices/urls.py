from django.urls import path

from . import views

app_name = "devices"

urlpatterns = [
    path("access-event/", views.access_event, name="access_event"),
    path("heartbeat/", views.heartbeat, name="heartbeat"),
    path("sync/", views.sync_data, name="sync"),
    path("trigger-relay/", views.trigger_relay_view, name="trigger_relay"),
]
