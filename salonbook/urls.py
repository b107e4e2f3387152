# salonbook/urls.py
#
# Purpose:
# - Project URL router.
# - All JSON APIs live under /api/ via the scheduling app's DRF router.
#
from django.urls import include, path

urlpatterns = [
    path("api/", include("scheduling.urls")),
]
