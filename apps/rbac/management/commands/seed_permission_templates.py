"""
Management command to seed the default role permission templates.

Writes the catalog's default template for every role. Existing templates
are left untouched unless --overwrite is given, so the command is safe to
re-run.
"""
from django.core.management.base import BaseCommand
from apps.rbac.stores import RoleTemplateStore


class Command(BaseCommand):
    help = 'Seed default role permission templates (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--overwrite',
            action='store_true',
            help='Replace existing templates with the catalog defaults',
        )

    def handle(self, *args, **options):
        store = RoleTemplateStore()

        self.stdout.write('Seeding role permission templates...\n')
        results = store.seed_defaults(overwrite=options['overwrite'])

        for role, outcome in results.items():
            label = store.catalog.role_to_api(role)
            if outcome == 'created':
                self.stdout.write(self.style.SUCCESS(f'✓ Created: {label}'))
            elif outcome == 'updated':
                self.stdout.write(self.style.WARNING(f'↻ Updated: {label}'))
            else:
                self.stdout.write(self.style.HTTP_INFO(f'  Exists: {label}'))

        created = sum(1 for outcome in results.values() if outcome == 'created')
        updated = sum(1 for outcome in results.values() if outcome == 'updated')
        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {created} created, {updated} updated, '
                f'{len(results) - created - updated} unchanged'
            )
        )
