import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Creates the default administrator account if it does not exist yet'

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, default=os.getenv("SEED_EMAIL", "admin@clue.local"))
        parser.add_argument('--name', type=str, default=os.getenv("SEED_NAME", "Administrator"))
        parser.add_argument('--password', type=str, default=os.getenv("SEED_PASSWORD"))

    def handle(self, *args, **options):
        User = get_user_model()
        email = options['email'].strip().lower()
        password = options['password']

        existing = User.objects.filter(email__iexact=email).first()
        if existing:
            self.stdout.write(self.style.WARNING(f"User already exists: {existing.email} (id={existing.id})"))
            return

        if not password:
            self.stdout.write(self.style.ERROR("A password is required (--password or SEED_PASSWORD)."))
            return

        first_name, _, last_name = options['name'].partition(" ")
        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=User.Role.ADMIN,
            is_staff=True,
        )
        self.stdout.write(self.style.SUCCESS(f"Seeded administrator {user.email} (id={user.id})"))
