from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Wallet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('actor_role', models.CharField(max_length=20)),
                ('referral_code', models.CharField(max_length=50)),
                ('balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Available balance after the last approval', max_digits=12)),
                ('total_withdrawn', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'wallets_wallet',
                'constraints': [
                    models.UniqueConstraint(fields=('actor_role', 'referral_code'), name='unique_wallet_per_actor'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WithdrawalRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('actor_role', models.CharField(max_length=20)),
                ('affiliate_code', models.CharField(db_index=True, max_length=50)),
                ('affiliate_name', models.CharField(max_length=200)),
                ('affiliate_email', models.EmailField(blank=True, max_length=254)),
                ('withdrawal_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('gst_percentage', models.DecimalField(decimal_places=2, max_digits=5)),
                ('gst_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('net_payable', models.DecimalField(decimal_places=2, max_digits=12)),
                ('payment_method', models.CharField(choices=[('BANK_TRANSFER', 'Bank Transfer'), ('UPI', 'UPI')], max_length=20)),
                ('bank_name', models.CharField(blank=True, max_length=255)),
                ('bank_branch', models.CharField(blank=True, max_length=255)),
                ('ifsc_code', models.CharField(blank=True, max_length=20)),
                ('account_name', models.CharField(blank=True, max_length=255)),
                ('account_number_encrypted', models.TextField(blank=True)),
                ('upi_id_encrypted', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected'), ('PAID', 'Paid')], db_index=True, default='PENDING', max_length=10)),
                ('requested_at', models.DateTimeField(auto_now_add=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('admin_notes', models.TextField(blank=True)),
                ('wallet_balance_before', models.DecimalField(blank=True, decimal_places=2, help_text='Available balance recomputed at approval', max_digits=12, null=True)),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('payment_details', models.TextField(blank=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_withdrawals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'wallets_withdrawal_request',
                'ordering': ['-requested_at', '-id'],
                'indexes': [
                    models.Index(fields=['actor_role', 'affiliate_code', 'status'], name='idx_withdrawal_actor_status'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('withdrawal_amount__gt', 0)), name='withdrawal_amount_positive'),
                    models.UniqueConstraint(condition=models.Q(('status', 'PENDING')), fields=('actor_role', 'affiliate_code'), name='one_pending_withdrawal_per_actor'),
                ],
            },
        ),
    ]
