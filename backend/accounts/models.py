from django.db import models
from django.contrib.auth.models import AbstractUser
from .managers import UserManager


class Role(models.TextChoices):
    APPLICANT = "APPLICANT", "Applicant"
    REVIEWER = "REVIEWER", "Reviewer"
    ADMIN = "ADMIN", "Administrator"


STAFF_ROLES = (Role.REVIEWER, Role.ADMIN)


class User(AbstractUser):
    """
    Email-first auth; username removed. Applicant accounts are created as a
    shell (unusable password) during invite redemption.
    """
    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.APPLICANT)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    @property
    def is_staff_role(self) -> bool:
        return self.is_superuser or self.role in STAFF_ROLES

    def __str__(self):
        return self.email
