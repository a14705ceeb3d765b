"""
Verify that every company's posted ledger balances.

Prints one trial balance summary per company and fails if any company's
total debits differ from its total credits.

Usage:
    python manage.py verify_ledger
    python manage.py verify_ledger --company-id 123 --as-of 2024-12-31
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from accounts.models import Company
from accounting.balances import trial_balance


class Command(BaseCommand):
    help = "Check that posted debits equal posted credits for each company"

    def add_arguments(self, parser):
        parser.add_argument(
            "--company-id",
            type=int,
            help="Only verify this company",
        )
        parser.add_argument(
            "--as-of",
            type=str,
            help="Only include entries dated on or before this date (YYYY-MM-DD)",
        )

    def handle(self, *args, **options):
        as_of_date = None
        if options["as_of"]:
            try:
                as_of_date = parse_date(options["as_of"])
            except ValueError:
                as_of_date = None
            if as_of_date is None:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        companies = Company.objects.order_by("id")
        if options["company_id"]:
            companies = companies.filter(pk=options["company_id"])
            if not companies.exists():
                raise CommandError(f"Company with ID {options['company_id']} not found")

        unbalanced = []
        for company in companies:
            report = trial_balance(company.id, as_of_date=as_of_date)
            line = (
                f"{company.code}: debits {report.total_debits} / credits {report.total_credits}"
            )
            if report.is_balanced:
                self.stdout.write(self.style.SUCCESS(f"OK  {line}"))
            else:
                self.stdout.write(self.style.ERROR(f"BAD {line} (difference {report.difference})"))
                unbalanced.append(company.code)

        if unbalanced:
            raise CommandError(f"Unbalanced ledger for: {', '.join(unbalanced)}")

        self.stdout.write(self.style.SUCCESS("All ledgers balance."))
