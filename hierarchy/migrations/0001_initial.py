import django.db.models.deletion
import django.db.models.functions.text
from django.conf import settings
from django.db import migrations, models


def actor_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('referral_code', models.CharField(help_text='Code customers use at checkout', max_length=50, unique=True)),
        ('first_name', models.CharField(max_length=100)),
        ('last_name', models.CharField(blank=True, max_length=100)),
        ('email', models.EmailField(blank=True, max_length=254)),
        ('phone', models.CharField(blank=True, max_length=20)),
        ('is_active', models.BooleanField(db_index=True, default=True)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
    ]


def user_field(related_name):
    return (
        'user',
        models.OneToOneField(
            blank=True,
            help_text='Login account acting as this actor',
            null=True,
            on_delete=django.db.models.deletion.SET_NULL,
            related_name=related_name,
            to=settings.AUTH_USER_MODEL,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='State',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'hierarchy_state',
                'ordering': ['name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('name'), name='unique_state_name_ci'),
                ],
            },
        ),
        migrations.CreateModel(
            name='City',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('state', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='cities', to='hierarchy.state')),
            ],
            options={
                'db_table': 'hierarchy_city',
                'ordering': ['name'],
                'verbose_name_plural': 'Cities',
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('name'), models.F('state'), name='unique_city_name_per_state_ci'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Branch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('city', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='branches', to='hierarchy.city')),
            ],
            options={
                'db_table': 'hierarchy_branch',
                'ordering': ['name'],
                'verbose_name_plural': 'Branches',
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('name'), models.F('city'), name='unique_branch_name_per_city_ci'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StateAdmin',
            fields=actor_fields() + [
                user_field('stateadmin_profile'),
                ('state', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='state_admins', to='hierarchy.state')),
            ],
            options={
                'db_table': 'hierarchy_state_admin',
                'ordering': ['first_name', 'last_name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('referral_code'), name='unique_stateadmin_referral_code_ci'),
                ],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='AreaSalesManager',
            fields=actor_fields() + [
                user_field('areasalesmanager_profile'),
                ('city', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='area_sales_managers', to='hierarchy.city')),
            ],
            options={
                'verbose_name': 'Area Sales Manager',
                'db_table': 'hierarchy_area_sales_manager',
                'ordering': ['first_name', 'last_name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('referral_code'), name='unique_areasalesmanager_referral_code_ci'),
                ],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='BranchAdmin',
            fields=actor_fields() + [
                user_field('branchadmin_profile'),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='branch_admins', to='hierarchy.branch')),
            ],
            options={
                'db_table': 'hierarchy_branch_admin',
                'ordering': ['first_name', 'last_name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('referral_code'), name='unique_branchadmin_referral_code_ci'),
                ],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Agent',
            fields=actor_fields() + [
                user_field('agent_profile'),
                ('branch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='agents', to='hierarchy.branch')),
            ],
            options={
                'db_table': 'hierarchy_agent',
                'ordering': ['first_name', 'last_name'],
                'constraints': [
                    models.UniqueConstraint(django.db.models.functions.text.Lower('referral_code'), name='unique_agent_referral_code_ci'),
                ],
                'abstract': False,
            },
        ),
    ]
