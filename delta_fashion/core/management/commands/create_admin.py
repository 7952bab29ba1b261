"""
Management command to create an administrator account, or promote an existing one

Usage:
    python manage.py create_admin --email admin@deltafashion.tn --password secret123
"""
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from delta_fashion.core.models import User


class Command(BaseCommand):
    help = "Creates an administrator account, or promotes an existing user to administrator"

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Administrator email address')
        parser.add_argument('--password', required=True, help='Password (at least 6 characters)')
        parser.add_argument('--first-name', default='Admin', help='First name')
        parser.add_argument('--last-name', default='Delta', help='Last name')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options['password']
        if len(password) < 6:
            raise CommandError('Password must contain at least 6 characters.')

        with transaction.atomic():
            user = User.objects.filter(email=email).first()
            if user:
                user.role = User.ROLE_ADMIN
                user.is_active = True
                user.set_password(password)
                user.save()
                self.stdout.write(self.style.WARNING(f"Existing user {email} promoted to administrator."))
                return

            User.objects.create_user(
                email=email,
                password=password,
                first_name=options['first_name'],
                last_name=options['last_name'],
                role=User.ROLE_ADMIN,
            )
        self.stdout.write(self.style.SUCCESS(f"Administrator {email} created."))
