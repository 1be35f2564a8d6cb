from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('catalog', '0001_initial'),
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('status', models.CharField(choices=[('DRAFT', 'Draft'), ('PENDING_VALIDATION', 'Pending Validation'), ('ACTIVE', 'Active'), ('REJECTED', 'Rejected'), ('CLOSED', 'Closed')], db_index=True, default='DRAFT', max_length=20)),
                ('total_cartons', models.PositiveIntegerField(default=0)),
                ('total_cbm', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=16)),
                ('accepts_negotiation', models.BooleanField(default=False)),
                ('country', models.CharField(blank=True, default='', max_length=100)),
                ('city', models.CharField(blank=True, default='', max_length=100)),
                ('images', models.JSONField(blank=True, default=list)),
                ('company_name', models.CharField(blank=True, default='', max_length=255)),
                ('proforma_invoice_no', models.CharField(blank=True, default='', max_length=100)),
                ('document_date', models.DateField(blank=True, null=True)),
                ('upload_file_name', models.CharField(blank=True, default='', max_length=255)),
                ('upload_file_size', models.PositiveIntegerField(blank=True, null=True)),
                ('validated_at', models.DateTimeField(blank=True, null=True)),
                ('validation_notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='offers', to='catalog.category')),
                ('trader', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='parties.trader')),
                ('validated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='validated_offers', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'offers',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', '-created_at'], name='offer_status_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OfferItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_no', models.CharField(blank=True, default='', max_length=100)),
                ('product_name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('colour', models.CharField(blank=True, default='', max_length=100)),
                ('spec', models.CharField(blank=True, default='', max_length=255)),
                ('quantity', models.PositiveIntegerField(default=0)),
                ('unit', models.CharField(default='SET', max_length=20)),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16)),
                ('packing', models.CharField(blank=True, default='', max_length=255)),
                ('package_quantity', models.PositiveIntegerField(default=0, help_text='Number of cartons')),
                ('unit_gw', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ('total_gw', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True)),
                ('carton_length', models.DecimalField(blank=True, decimal_places=2, help_text='cm', max_digits=10, null=True)),
                ('carton_width', models.DecimalField(blank=True, decimal_places=2, help_text='cm', max_digits=10, null=True)),
                ('carton_height', models.DecimalField(blank=True, decimal_places=2, help_text='cm', max_digits=10, null=True)),
                ('total_cbm', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=14)),
                ('images', models.JSONField(blank=True, default=list)),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='offers.offer')),
            ],
            options={
                'db_table': 'offer_items',
                'ordering': ['display_order', 'id'],
            },
        ),
    ]
