from decimal import Decimal
import uuid

from django.db import migrations, models
import django.db.models.deletion
import restaurants.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Restaurant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('service_charge_percent', models.DecimalField(decimal_places=2, default=restaurants.models.default_service_charge_percent, help_text='Service charge applied to dine-in orders, in percent', max_digits=5)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('sort_order', models.PositiveIntegerField(default=0)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='categories', to='restaurants.restaurant')),
            ],
            options={
                'verbose_name_plural': 'categories',
                'ordering': ['sort_order', 'name'],
                'indexes': [models.Index(fields=['restaurant', 'sort_order'], name='category_restaurant_sort_idx')],
            },
        ),
        migrations.CreateModel(
            name='Food',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('is_available', models.BooleanField(default=True)),
                ('is_in_stop_list', models.BooleanField(db_index=True, default=False)),
                ('stop_list_reason', models.CharField(blank=True, max_length=255)),
                ('stopped_at', models.DateTimeField(blank=True, null=True)),
                ('auto_stop_list_enabled', models.BooleanField(default=False)),
                ('daily_order_limit', models.PositiveIntegerField(default=0, help_text='Portions per day before the food is stop-listed. 0 means no limit.')),
                ('daily_order_count', models.PositiveIntegerField(default=0)),
                ('daily_count_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='foods', to='restaurants.category')),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='foods', to='restaurants.restaurant')),
            ],
            options={
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['restaurant', 'category'], name='food_restaurant_category_idx'),
                    models.Index(fields=['restaurant', 'is_available'], name='food_restaurant_available_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Table',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=100)),
                ('table_number', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('free', 'Free'), ('occupied', 'Occupied'), ('reserved', 'Reserved')], db_index=True, default='free', max_length=20)),
                ('active_order_id', models.UUIDField(blank=True, null=True)),
                ('surcharge', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Flat surcharge added to every order placed at this table', max_digits=12)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tables', to='restaurants.restaurant')),
            ],
            options={
                'ordering': ['table_number', 'title'],
                'indexes': [models.Index(fields=['restaurant', 'status'], name='table_restaurant_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='StaffMember',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('waiter', 'Waiter'), ('cook', 'Cook'), ('cashier', 'Cashier')], max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('assigned_categories', models.ManyToManyField(blank=True, help_text='Categories a cook prepares. Empty means all categories.', related_name='cooks', to='restaurants.category')),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='staff', to='restaurants.restaurant')),
            ],
            options={
                'ordering': ['first_name', 'last_name'],
                'indexes': [models.Index(fields=['restaurant', 'role', 'is_active'], name='staff_restaurant_role_idx')],
            },
        ),
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=64)),
                ('value', models.PositiveBigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='counters', to='restaurants.restaurant')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('restaurant', 'key'), name='unique_counter_per_restaurant')],
            },
        ),
    ]
