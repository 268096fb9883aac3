from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from accounts.models import Role, User, phonenumber_validator


class Command(BaseCommand):
    help = (
        "Create a trail administrator (public signup cannot create admins).\n"
        "An existing account with the same phone number is promoted and its password reset."
    )

    def add_arguments(self, parser):
        parser.add_argument("phonenumber", type=str, help="10 digit phone number, used as login handle")
        parser.add_argument("password", type=str)
        parser.add_argument("--name", default="Admin")
        parser.add_argument("--department", default="Organisation")

    def handle(self, *args, **options):
        phonenumber = options["phonenumber"].strip()
        try:
            phonenumber_validator(phonenumber)
        except ValidationError:
            raise CommandError("Phone number must be exactly 10 digits.")
        if len(options["password"]) < 6:
            raise CommandError("Password must be at least 6 characters.")

        user = User.objects.filter(phonenumber=phonenumber).first()
        created = user is None
        if created:
            user = User(
                phonenumber=phonenumber,
                name=options["name"],
                department=options["department"],
            )
        user.role = Role.ADMIN
        user.set_password(options["password"])
        user.save()

        verb = "created" if created else "promoted"
        self.stdout.write(self.style.SUCCESS(f"Admin {verb}: {user.name} ({user.phonenumber})"))
