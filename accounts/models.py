from django.contrib.auth.hashers import check_password, make_password
from django.core.validators import RegexValidator
from django.db import models


class Role(models.TextChoices):
    USER = 'user', 'User'
    ADMIN = 'admin', 'Admin'


phonenumber_validator = RegexValidator(r'^\d{10}$', "Phone number must be exactly 10 digits.")


class User(models.Model):
    """A trail participant or an administrator."""
    name = models.CharField("Name", max_length=100)
    department = models.CharField("Department", max_length=100)
    phonenumber = models.CharField(
        "Phone number",
        max_length=10,
        unique=True,
        validators=[phonenumber_validator],
        help_text="Login handle, 10 digits",
    )
    password = models.CharField(max_length=128)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.name} ({self.phonenumber}, {self.role})"

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'department': self.department,
            'phonenumber': self.phonenumber,
            'role': self.role,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
