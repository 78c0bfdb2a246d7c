from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "GymDesk — Admin"
admin.site.site_title = "GymDesk"
admin.site.index_title = "Branch management"

urlpatterns = [
    path("admin/", admin.site.urls),

    path("devices/", include("devices.urls")),
    path("payments/", include("payments.urls")),
]
