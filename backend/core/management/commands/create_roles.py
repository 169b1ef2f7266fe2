from django.core.management.base import BaseCommand

from backend.core.models import Role
from backend.core.permissions import ROLE_PERMISSIONS


class Command(BaseCommand):
    help = 'Create application roles for RBAC: Administrator, Acctg, User'

    def handle(self, *args, **options):
        roles_config = [
            {
                'name': Role.ADMINISTRATOR,
                'description': 'Store owner - full access to catalog, orders, reports and user management',
            },
            {
                'name': Role.ACCTG,
                'description': 'Accounting staff - can create, read and update records, marks orders as paid',
            },
            {
                'name': Role.USER,
                'description': 'Read-only access to the back office',
            },
        ]

        created_count = 0
        updated_count = 0

        for role_config in roles_config:
            role, created = Role.objects.get_or_create(
                name=role_config['name'],
                defaults={'description': role_config['description']}
            )
            permissions = ', '.join(ROLE_PERMISSIONS[role.name])

            if created:
                self.stdout.write(self.style.SUCCESS(f'Created role: {role.name} ({permissions})'))
                created_count += 1
            else:
                if role.description != role_config['description']:
                    role.description = role_config['description']
                    role.save(update_fields=['description'])
                self.stdout.write(f'  Role already exists: {role.name} ({permissions})')
                updated_count += 1

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} roles created, {updated_count} roles already existed'
        ))
