"""
Create (or promote) a global administrator.

Usage:
    python manage.py create_global_admin --email admin@example.com --name "Admin" --password secret123
    python manage.py create_global_admin --email existing@example.com --promote

Options:
    --promote: Give an existing user the global administrator role
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounts.activity import Action, log_activity


class Command(BaseCommand):
    help = "Create a global administrator, or promote an existing user"

    def add_arguments(self, parser):
        parser.add_argument("--email", type=str, required=True, help="Email address of the administrator")
        parser.add_argument("--name", type=str, default="", help="Display name")
        parser.add_argument("--password", type=str, help="Password for a new user")
        parser.add_argument(
            "--promote",
            action="store_true",
            help="Promote an existing user instead of creating one",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()
        email = User.objects.normalize_email(options["email"].strip())

        if options["promote"]:
            try:
                user = User.objects.get(email__iexact=email)
            except User.DoesNotExist:
                raise CommandError(f"User {email} not found")
            user.global_role = User.GlobalRole.GLOBAL_ADMINISTRATOR
            user.is_active = True
            user.save(update_fields=["global_role", "is_active"])
            verb = "Promoted"
        else:
            if not options["password"]:
                raise CommandError("--password is required when creating a user")
            if User.objects.filter(email__iexact=email).exists():
                raise CommandError(f"User {email} already exists; use --promote")
            user = User.objects.create_user(
                email=email,
                password=options["password"],
                name=options["name"],
                global_role=User.GlobalRole.GLOBAL_ADMINISTRATOR,
            )
            verb = "Created"

        log_activity(
            user=None,
            company=None,
            action=Action.USER_CREATE if verb == "Created" else Action.ROLE_CHANGE,
            resource="user",
            resource_id=user.id,
            details={"email": user.email, "global_role": user.global_role, "source": "create_global_admin"},
        )
        self.stdout.write(self.style.SUCCESS(f"{verb} global administrator {user.email} (ID: {user.id})"))
