"""
Management command to reset an administrator's password
"""
from django.core.management.base import BaseCommand, CommandError

from delta_fashion.core.models import User


class Command(BaseCommand):
    help = "Resets the password of an administrator account"

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Administrator email address')
        parser.add_argument('--password', required=True, help='New password (at least 6 characters)')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options['password']
        if len(password) < 6:
            raise CommandError('Password must contain at least 6 characters.')

        user = User.objects.filter(email=email, role=User.ROLE_ADMIN).first()
        if user is None:
            raise CommandError(f"No administrator found with email {email}.")

        user.set_password(password)
        user.save(update_fields=['password', 'updated_at'])
        self.stdout.write(self.style.SUCCESS(f"Password reset for {email}."))
