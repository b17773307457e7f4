"""
Management command to classify legacy ledger rows that have no entry_kind.

Rows are classified by source and rate magnitude (see infer_entry_kind).

Usage:
    python manage.py backfill_entry_kind
    python manage.py backfill_entry_kind --dry-run
"""
from collections import Counter

from django.core.management.base import BaseCommand
from django.db import transaction

from commissions.models import CommissionLedgerEntry
from commissions.services import infer_entry_kind


class Command(BaseCommand):
    help = 'Set entry_kind on legacy ledger rows using the rate threshold heuristic'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report the classification without saving it',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=500,
            help='Rows updated per query (default: 500)',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        legacy = CommissionLedgerEntry.objects.filter(entry_kind__isnull=True).order_by('pk')
        total = legacy.count()
        if not total:
            self.stdout.write(self.style.SUCCESS('No legacy ledger rows to classify.'))
            return

        self.stdout.write(f"Classifying {total} legacy ledger rows{' (dry run)' if dry_run else ''}...")

        counts = Counter()
        batch = []
        for entry in legacy.iterator(chunk_size=batch_size):
            entry.entry_kind = infer_entry_kind(entry.commission_source, entry.affiliate_rate)
            counts[(entry.commission_source, entry.entry_kind)] += 1
            batch.append(entry)
            if len(batch) >= batch_size:
                self._flush(batch, dry_run)
                batch = []
        self._flush(batch, dry_run)

        for (source, kind), count in sorted(counts.items()):
            self.stdout.write(f"  {source:<22} {kind:<9} {count}")

        verb = 'Would classify' if dry_run else 'Classified'
        self.stdout.write(self.style.SUCCESS(f"{verb} {total} ledger rows."))

    @staticmethod
    def _flush(batch, dry_run):
        if dry_run or not batch:
            return
        with transaction.atomic():
            CommissionLedgerEntry.objects.bulk_update(batch, ['entry_kind'])
