from django.core.management import call_command
from django.core.management.base import BaseCommand

from apps.identity.models import User
from apps.proposals.models import Proposal, ProposalStatus, ProposalTemplate
from apps.roofing.models import EagleViewRoofOrder


SAMPLE_PROPOSALS = [
    {
        'client_name': 'Dana Whitfield',
        'address': '123 Main St, Springfield, IL 62701',
        'trade_id': 'bathroom',
        'job_type_id': 'bathroom-full-remodel',
        'job_type_name': 'Full Bathroom Remodel',
        'scope': ['Demo existing tile and vanity', 'Install new shower pan and tile', 'Set vanity and fixtures'],
        'price_low': 14000,
        'price_high': 18500,
        'status': ProposalStatus.DRAFT,
    },
    {
        'client_name': 'Luis Ortega',
        'address': '48 Oak Ave, Madison, WI 53703',
        'trade_id': 'roofing',
        'job_type_id': 'roof-replacement',
        'job_type_name': 'Roof Replacement',
        'scope': ['Tear off existing shingles', 'Install synthetic underlayment', 'Install architectural shingles'],
        'price_low': 11000,
        'price_high': 13500,
        'status': ProposalStatus.SENT,
        'is_unlocked': True,
    },
]


SYSTEM_TEMPLATES = [
    {
        'trade_id': 'bathroom',
        'trade_name': 'Bathroom',
        'job_type_id': 'bathroom-full-remodel',
        'job_type_name': 'Full Bathroom Remodel',
        'base_scope': ['Demo to studs', 'Waterproof and tile shower', 'Install vanity, toilet and fixtures'],
        'options': [{'id': 'heated-floor', 'label': 'Heated floor', 'priceModifier': 1800}],
        'base_price_low': 12000,
        'base_price_high': 20000,
        'estimated_days_low': 10,
        'estimated_days_high': 15,
    },
    {
        'trade_id': 'roofing',
        'trade_name': 'Roofing',
        'job_type_id': 'roof-replacement',
        'job_type_name': 'Roof Replacement',
        'base_scope': ['Tear off existing shingles', 'Install underlayment', 'Install architectural shingles'],
        'options': [{'id': 'ridge-vent', 'label': 'Ridge vent', 'priceModifier': 650}],
        'base_price_low': 9000,
        'base_price_high': 16000,
        'estimated_days_low': 2,
        'estimated_days_high': 4,
    },
]


class Command(BaseCommand):
    help = 'Seeds the database with demo users, templates, proposals and an EagleView order.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clean',
            action='store_true',
            help='Delete existing proposals and orders before seeding',
        )

    def handle(self, *args, **options):
        call_command('seed_users', stdout=self.stdout)

        if options['clean']:
            Proposal.objects.all().delete()
            EagleViewRoofOrder.objects.all().delete()
            self.stdout.write(self.style.WARNING('Removed existing proposals and orders'))

        for data in SYSTEM_TEMPLATES:
            template, created = ProposalTemplate.objects.get_or_create(
                created_by=None,
                trade_id=data['trade_id'],
                job_type_id=data['job_type_id'],
                defaults=data,
            )
            self.stdout.write(f'{"Created" if created else "Exists"}: template {template}')

        owner = User.objects.get(username='starter')
        for data in SAMPLE_PROPOSALS:
            proposal, created = Proposal.objects.get_or_create(
                owner=owner,
                client_name=data['client_name'],
                defaults=data,
            )
            label = 'Created' if created else 'Exists'
            self.stdout.write(f'{label}: proposal {proposal.id} ({proposal.job_type_name})')

        order, created = EagleViewRoofOrder.objects.get_or_create(
            job_id='demo-roof-job',
            defaults={
                'user': owner,
                'address': '48 Oak Ave, Madison, WI 53703',
                'status': EagleViewRoofOrder.Status.QUEUED,
            },
        )
        self.stdout.write(f'{"Created" if created else "Exists"}: EagleView order {order.job_id}')

        self.stdout.write(self.style.SUCCESS('Seeding complete'))
