from decimal import Decimal
import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('restaurants', '0001_initial'),
        ('shifts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False, help_text='Soft-deleted records are hidden everywhere but kept for audit.')),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_by_id', models.UUIDField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('transferred_to_shift_at', models.DateTimeField(blank=True, null=True)),
                ('order_number', models.PositiveIntegerField()),
                ('business_date', models.DateField(default=django.utils.timezone.localdate)),
                ('order_type', models.CharField(choices=[('dine-in', 'Dine-in'), ('saboy', 'Saboy'), ('takeaway', 'Takeaway')], default='dine-in', max_length=20)),
                ('saboy_number', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('preparing', 'Preparing'), ('ready', 'Ready'), ('served', 'Served'), ('paid', 'Paid'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('comment', models.TextField(blank=True)),
                ('waiter_id', models.UUIDField(blank=True, null=True)),
                ('waiter_name', models.CharField(blank=True, max_length=200)),
                ('original_table_id', models.UUIDField(blank=True, null=True)),
                ('original_waiter_id', models.UUIDField(blank=True, null=True)),
                ('original_waiter_name', models.CharField(blank=True, max_length=200)),
                ('service_charge_waiter_id', models.UUIDField(blank=True, null=True)),
                ('transferred_from_table_id', models.UUIDField(blank=True, null=True)),
                ('transferred_at', models.DateTimeField(blank=True, null=True)),
                ('transfer_history', models.JSONField(blank=True, default=list)),
                ('waiter_approved', models.BooleanField(default=False)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('approved_by_id', models.UUIDField(blank=True, null=True)),
                ('waiter_rejected', models.BooleanField(default=False)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_by_id', models.UUIDField(blank=True, null=True)),
                ('cancellation_reason', models.CharField(blank=True, max_length=255)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('service_charge_percent', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('service_charge', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('discount_percent', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('surcharge', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('grand_total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('all_items_ready', models.BooleanField(default=False)),
                ('is_paid', models.BooleanField(db_index=True, default=False)),
                ('payment_type', models.CharField(blank=True, choices=[('cash', 'Cash'), ('card', 'Card'), ('click', 'Click'), ('mixed', 'Mixed')], max_length=10, null=True)),
                ('payment_split_cash', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('payment_split_card', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('payment_split_click', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('payment_comment', models.TextField(blank=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('paid_by_id', models.UUIDField(blank=True, null=True)),
                ('paid_by_name', models.CharField(blank=True, max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='orders', to='restaurants.restaurant')),
                ('shift', models.ForeignKey(blank=True, help_text='Null means orphaned: waiting for the next shift to adopt it', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='shifts.shift')),
                ('table', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='restaurants.table')),
                ('transferred_from_shift', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='shifts.shift')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['restaurant', 'shift', 'status'], name='order_restaurant_shift_idx'),
                    models.Index(fields=['restaurant', 'business_date'], name='order_restaurant_date_idx'),
                    models.Index(fields=['restaurant', 'is_paid', 'shift'], name='order_restaurant_paid_idx'),
                    models.Index(fields=['table', 'is_paid'], name='order_table_paid_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('restaurant', 'business_date', 'order_number'), name='unique_order_number_per_restaurant_day'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False, help_text='Soft-deleted records are hidden everywhere but kept for audit.')),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_by_id', models.UUIDField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveIntegerField(default=0, help_text='Index in the full item list; kitchen commands address items by it')),
                ('food_name', models.CharField(max_length=255)),
                ('category_id', models.UUIDField(blank=True, null=True)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('ready_quantity', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('preparing', 'Preparing'), ('ready', 'Ready'), ('served', 'Served'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('notes', models.CharField(blank=True, max_length=255)),
                ('is_started', models.BooleanField(default=False)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('started_by_id', models.UUIDField(blank=True, null=True)),
                ('ready_at', models.DateTimeField(blank=True, null=True)),
                ('preparation_duration', models.PositiveIntegerField(blank=True, help_text='Seconds from added to fully ready', null=True)),
                ('served_at', models.DateTimeField(blank=True, null=True)),
                ('added_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('added_by_id', models.UUIDField(blank=True, null=True)),
                ('added_by_name', models.CharField(blank=True, max_length=200)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_by_id', models.UUIDField(blank=True, null=True)),
                ('cancelled_by_name', models.CharField(blank=True, max_length=200)),
                ('cancel_reason', models.CharField(blank=True, max_length=255)),
                ('food', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_items', to='restaurants.food')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.order')),
            ],
            options={
                'ordering': ['position'],
                'indexes': [
                    models.Index(fields=['order', 'status'], name='order_item_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('ready_quantity__lte', models.F('quantity'))), name='order_item_ready_lte_quantity'),
                ],
            },
        ),
    ]
