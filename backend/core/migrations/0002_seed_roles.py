from django.db import migrations

ROLES = [
    ('Administrator', 'Store owner - full access to catalog, orders, reports and user management'),
    ('Acctg', 'Accounting staff - can create, read and update records, marks orders as paid'),
    ('User', 'Read-only access to the back office'),
]


def create_roles(apps, schema_editor):
    Role = apps.get_model('core', 'Role')
    for name, description in ROLES:
        Role.objects.get_or_create(name=name, defaults={'description': description})


def remove_roles(apps, schema_editor):
    Role = apps.get_model('core', 'Role')
    Role.objects.filter(name__in=[name for name, _ in ROLES]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_roles, remove_roles),
    ]
