from decimal import Decimal
import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('restaurants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Shift',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False, help_text='Soft-deleted records are hidden everywhere but kept for audit.')),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_by_id', models.UUIDField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('shift_number', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('closed', 'Closed')], default='active', max_length=10)),
                ('opened_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('opened_by_id', models.UUIDField(blank=True, null=True)),
                ('opened_by_name', models.CharField(blank=True, max_length=200)),
                ('opening_cash', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('opening_notes', models.TextField(blank=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('closed_by_id', models.UUIDField(blank=True, null=True)),
                ('closed_by_name', models.CharField(blank=True, max_length=200)),
                ('closing_cash', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('closing_notes', models.TextField(blank=True)),
                ('expected_closing_cash', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('cash_difference', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('transferred_order_ids', models.JSONField(blank=True, default=list)),
                ('total_orders', models.PositiveIntegerField(default=0)),
                ('paid_orders', models.PositiveIntegerField(default=0)),
                ('cancelled_orders', models.PositiveIntegerField(default=0)),
                ('total_revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('food_revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('service_revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('cash_payments', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('card_payments', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('click_payments', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('mixed_payments', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('average_order_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('total_items_sold', models.PositiveIntegerField(default=0)),
                ('total_cancelled_items', models.PositiveIntegerField(default=0)),
                ('cancelled_items_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shifts', to='restaurants.restaurant')),
            ],
            options={
                'ordering': ['-opened_at'],
                'indexes': [
                    models.Index(fields=['restaurant', 'status'], name='shift_restaurant_status_idx'),
                    models.Index(fields=['restaurant', '-opened_at'], name='shift_restaurant_opened_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'active'), ('is_deleted', False)), fields=('restaurant',), name='one_active_shift_per_restaurant'),
                    models.UniqueConstraint(fields=('restaurant', 'shift_number'), name='unique_shift_number_per_restaurant'),
                ],
            },
        ),
    ]
