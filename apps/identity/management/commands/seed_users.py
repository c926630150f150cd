from django.core.management.base import BaseCommand
from apps.identity.entitlements import Entitlement
from apps.identity.models import User, UserRole, SubscriptionPlan


class Command(BaseCommand):
    help = 'Seeds the database with demo contractor accounts'

    def handle(self, *args, **options):
        users = [
            {'username': 'admin', 'role': UserRole.ADMIN, 'plan': SubscriptionPlan.PRO, 'entitlements': [Entitlement.SEARCH_CONSOLE]},
            {'username': 'crew', 'role': UserRole.USER, 'plan': SubscriptionPlan.CREW, 'entitlements': [Entitlement.CREW_PAYOUT]},
            {'username': 'starter', 'role': UserRole.USER, 'plan': SubscriptionPlan.STARTER, 'entitlements': []},
            {'username': 'free', 'role': UserRole.USER, 'plan': SubscriptionPlan.FREE, 'entitlements': [], 'credits': 3},
        ]

        for u in users:
            user, created = User.objects.get_or_create(username=u['username'])

            user.email = f"{u['username']}@scopegen.local"
            user.role = u['role']
            user.subscription_plan = u['plan']
            user.entitlements = u['entitlements']
            user.company_name = f"{u['username'].title()} Home Services"
            if 'credits' in u:
                user.proposal_credits = u['credits']
            if u['role'] == UserRole.ADMIN:
                user.is_staff = True
                user.is_superuser = True

            if created:
                user.set_password('password')
                user.save()
                self.stdout.write(self.style.SUCCESS(f'Created user: {u["username"]} (Plan: {u["plan"]})'))
            else:
                user.save()
                self.stdout.write(self.style.WARNING(f'Updated user: {u["username"]}'))
