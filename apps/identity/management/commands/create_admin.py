from django.core.management.base import BaseCommand
from apps.identity.models import User, UserRole


class Command(BaseCommand):
    help = 'Creates the initial administrator account if it does not exist'

    def add_arguments(self, parser):
        parser.add_argument('--email', default='admin@taskmanager.com')
        parser.add_argument('--password', default='AdminPass123')

    def handle(self, *args, **options):
        email = options['email'].lower()

        if User.objects.filter(email=email).exists():
            self.stdout.write(self.style.WARNING(f'Admin user already exists: {email}'))
            return

        User.objects.create_superuser(
            email=email,
            password=options['password'],
            first_name='Admin',
            last_name='User',
            role=UserRole.ADMIN,
        )
        self.stdout.write(self.style.SUCCESS(f'Created admin user: {email}'))
        self.stdout.write(self.style.WARNING('Please change the password after first login'))
