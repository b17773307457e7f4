from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('hierarchy', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('activity_type', models.CharField(choices=[('commission_recorded', 'Commission Recorded'), ('withdrawal_requested', 'Withdrawal Requested'), ('withdrawal_approved', 'Withdrawal Approved'), ('withdrawal_approval_failed', 'Withdrawal Approval Failed'), ('withdrawal_rejected', 'Withdrawal Rejected'), ('withdrawal_cancelled', 'Withdrawal Cancelled'), ('withdrawal_paid', 'Withdrawal Paid')], db_index=True, max_length=30)),
                ('description', models.CharField(max_length=500)),
                ('amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('actor_role', models.CharField(blank=True, max_length=20)),
                ('actor_code', models.CharField(blank=True, db_index=True, max_length=50)),
                ('actor_name', models.CharField(blank=True, max_length=200)),
                ('target_type', models.CharField(blank=True, max_length=50)),
                ('target_id', models.CharField(blank=True, max_length=100)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('branch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='hierarchy.branch')),
                ('city', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='hierarchy.city')),
                ('state', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='hierarchy.state')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activity_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'activity_log',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['state', 'created_at'], name='idx_activity_state_created'),
                    models.Index(fields=['city', 'created_at'], name='idx_activity_city_created'),
                    models.Index(fields=['branch', 'created_at'], name='idx_activity_branch_created'),
                    models.Index(fields=['target_type', 'target_id'], name='idx_activity_target'),
                ],
            },
        ),
    ]
