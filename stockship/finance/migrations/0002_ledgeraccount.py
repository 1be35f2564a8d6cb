from decimal import Decimal

from django.db import migrations, models


def copy_balances(apps, schema_editor):
    """Seed one account row per ledger account from its latest entry"""
    LedgerAccount = apps.get_model('finance', 'LedgerAccount')
    LedgerEntry = apps.get_model('finance', 'LedgerEntry')
    latest = {}
    for entry in LedgerEntry.objects.order_by('id').iterator():
        latest[(entry.account_type, entry.account_id)] = entry.balance_after
    for (account_type, account_id), balance in latest.items():
        key = f"{account_type}:{account_id if account_id is not None else '-'}"
        LedgerAccount.objects.create(key=key, account_type=account_type, account_id=account_id, balance=balance)


class Migration(migrations.Migration):

    dependencies = [
        ('finance', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LedgerAccount',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=50, unique=True)),
                ('account_type', models.CharField(max_length=20)),
                ('account_id', models.PositiveBigIntegerField(blank=True, null=True)),
                ('balance', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'ledger_accounts',
                'ordering': ['account_type', 'account_id'],
            },
        ),
        migrations.RunPython(copy_balances, migrations.RunPython.noop),
    ]
