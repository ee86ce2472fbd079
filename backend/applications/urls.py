from django.urls import path
from . import views

urlpatterns = [
    path("applications/<int:application_id>/progress/", views.application_progress, name="application_progress"),
    path("progress/<int:progress_id>/start/", views.progress_start, name="progress_start"),
    path("progress/<int:progress_id>/complete/", views.progress_complete, name="progress_complete"),
    path("progress/<int:progress_id>/review/", views.progress_review, name="progress_review"),
    path("progress/<int:progress_id>/unblock/", views.progress_unblock, name="progress_unblock"),
]
