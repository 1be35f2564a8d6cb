from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


DEAL_STATUS_CHOICES = [
    ('NEGOTIATION', 'Negotiation'), ('APPROVED', 'Approved'), ('PAID', 'Paid'),
    ('SETTLED', 'Settled'), ('CANCELLED', 'Cancelled'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('offers', '0001_initial'),
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Deal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('deal_number', models.CharField(max_length=30, unique=True)),
                ('status', models.CharField(choices=DEAL_STATUS_CHOICES, db_index=True, default='NEGOTIATION', max_length=20)),
                ('notes', models.TextField(blank=True, null=True)),
                ('negotiated_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('total_cartons', models.PositiveIntegerField(default=0)),
                ('total_cbm', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=16)),
                ('invoice_number', models.CharField(blank=True, max_length=30, null=True, unique=True)),
                ('barcode', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('barcode_image', models.TextField(blank=True, help_text='PNG data URL', null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('settled_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='client_deals', to=settings.AUTH_USER_MODEL)),
                ('employee', models.ForeignKey(blank=True, help_text='Guarantor employee of the trader', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='deals', to='parties.employee')),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='deals', to='offers.offer')),
                ('trader', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='deals', to='parties.trader')),
            ],
            options={
                'db_table': 'deals',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'approved_at'], name='deal_status_approved_idx'),
                    models.Index(fields=['client', '-created_at'], name='deal_client_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DealItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField()),
                ('cartons', models.PositiveIntegerField(default=0)),
                ('cbm', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=16)),
                ('negotiated_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='deals.deal')),
                ('offer_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='deal_items', to='offers.offeritem')),
            ],
            options={
                'db_table': 'deal_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='DealStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=DEAL_STATUS_CHOICES, max_length=20)),
                ('description', models.TextField(blank=True, default='')),
                ('changed_by_type', models.CharField(help_text='Role of the actor, or SYSTEM', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='deal_status_changes', to=settings.AUTH_USER_MODEL)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='deals.deal')),
            ],
            options={
                'db_table': 'deal_status_history',
                'ordering': ['created_at', 'id'],
                'verbose_name_plural': 'Deal status history',
            },
        ),
        migrations.CreateModel(
            name='DealNegotiation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sender_type', models.CharField(max_length=20)),
                ('message_type', models.CharField(choices=[('TEXT', 'Text'), ('PRICE', 'Price proposal'), ('QUANTITY', 'Quantity proposal')], default='TEXT', max_length=10)),
                ('message', models.TextField(blank=True, null=True)),
                ('proposed_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('proposed_quantity', models.PositiveIntegerField(blank=True, null=True)),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='negotiations', to='deals.deal')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='deal_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'deal_negotiations',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['deal', 'is_read'], name='negotiation_deal_read_idx')],
            },
        ),
    ]
