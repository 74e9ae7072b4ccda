from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

User = get_user_model()


class Command(BaseCommand):
    help = "Ensure the clinical role groups exist; optionally put a user in one (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--user", help="Username to add to a role group.")
        parser.add_argument("--role", default=None, help="Role group for --user (defaults to the first role).")

    def handle(self, *args, **opts):
        for name in settings.CYCLE_CLINICAL_ROLES:
            _, created = Group.objects.get_or_create(name=name)
            self.stdout.write(self.style.SUCCESS(f"{'created' if created else 'ok'}: {name}"))
        if not opts["user"]:
            return
        role = opts["role"] or settings.CYCLE_CLINICAL_ROLES[0]
        if role not in settings.CYCLE_CLINICAL_ROLES:
            self.stderr.write(self.style.ERROR(f"unknown role {role!r}"))
            return
        try:
            user = User.objects.get(username=opts["user"])
        except User.DoesNotExist:
            self.stderr.write(self.style.ERROR(f"no user {opts['user']!r}"))
            return
        user.groups.add(Group.objects.get(name=role))
        self.stdout.write(self.style.SUCCESS(f"{user.username} -> {role}"))
