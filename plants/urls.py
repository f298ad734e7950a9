from django.urls import path

from . import views

urlpatterns = [
    path("api/detect-plant/", views.detect_plant, name="detect_plant"),
    path("api/detections/", views.detections_list, name="detections_list"),
    path("api/detections/<str:pk>/", views.detection_detail, name="detection_detail"),
    path("api/images/<str:pk>/", views.detection_image, name="detection_image"),
]
