from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


def percentage_validators():
    return [
        django.core.validators.MinValueValidator(Decimal('0')),
        django.core.validators.MaxValueValidator(Decimal('100')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CommissionRate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role_type', models.CharField(choices=[('affiliate', 'Affiliate (base)'), ('branch_direct', 'Branch Admin direct bonus'), ('branch', 'Branch Admin override'), ('area', 'Area Sales Manager'), ('state', 'State Admin')], max_length=20, unique=True)),
                ('percentage', models.DecimalField(decimal_places=2, help_text='Percentage of the commission pool (e.g., 70.00)', max_digits=5, validators=percentage_validators())),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='commission_rate_updates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'commissions_rate',
                'ordering': ['role_type'],
            },
        ),
        migrations.CreateModel(
            name='ProductCommission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('category_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('collection_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('product_type_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('commission_rate', models.DecimalField(decimal_places=2, help_text='Pool percentage of the order amount', max_digits=5, validators=percentage_validators())),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'commissions_product_commission',
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='CommissionLedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(db_index=True, max_length=100)),
                ('affiliate_code', models.CharField(db_index=True, help_text='Referral code credited by this row', max_length=50)),
                ('seller_code', models.CharField(db_index=True, help_text='Referral code used on the order', max_length=50)),
                ('commission_source', models.CharField(choices=[('affiliate', 'Agent sale'), ('branch_admin_direct', 'Branch Admin direct sale'), ('asm_direct', 'ASM direct sale'), ('state_admin_direct', 'State Admin direct sale'), ('branch_admin', 'Branch Admin override'), ('area_manager', 'ASM override'), ('state_admin', 'State Admin override')], db_index=True, max_length=30)),
                ('entry_kind', models.CharField(blank=True, choices=[('direct', 'Direct sale'), ('override', 'Override')], db_index=True, help_text='NULL only on legacy rows written before the column existed', max_length=10, null=True)),
                ('product_id', models.CharField(blank=True, max_length=100)),
                ('product_name', models.CharField(blank=True, max_length=255)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('order_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('commission_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Pool percentage of the order amount', max_digits=5)),
                ('commission_amount', models.DecimalField(decimal_places=2, help_text='Total commission pool of the order line', max_digits=12)),
                ('affiliate_rate', models.DecimalField(decimal_places=2, help_text='Percentage of the pool applied to produce this row', max_digits=5)),
                ('affiliate_commission', models.DecimalField(decimal_places=2, help_text='Credited amount', max_digits=12)),
                ('status', models.CharField(choices=[('PENDING', 'Pending delivery'), ('CREDITED', 'Credited')], db_index=True, default='PENDING', max_length=10)),
                ('customer_id', models.CharField(blank=True, max_length=100)),
                ('customer_name', models.CharField(blank=True, max_length=255)),
                ('customer_email', models.EmailField(blank=True, max_length=254)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('credited_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Commission Ledger Entry',
                'verbose_name_plural': 'Commission Ledger Entries',
                'db_table': 'commissions_ledger_entry',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['affiliate_code', 'status'], name='idx_ledger_code_status'),
                    models.Index(fields=['seller_code', 'entry_kind', 'status'], name='idx_ledger_seller_kind_status'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('order_id', 'product_id', 'commission_source'), name='unique_order_line_commission_source'),
                    models.CheckConstraint(condition=models.Q(('affiliate_rate__gte', 0), ('affiliate_commission__gte', 0)), name='ledger_amounts_non_negative'),
                ],
            },
        ),
    ]
