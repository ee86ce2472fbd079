from django.urls import path
from .views import invite_redeem, invite_validate

urlpatterns = [
    path("invites/validate/", invite_validate, name="invite_validate"),
    path("invites/redeem/", invite_redeem, name="invite_redeem"),
]
