from decimal import Decimal
import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('orders', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentSession',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('session_id', models.CharField(editable=False, max_length=64, unique=True)),
                ('paid_item_ids', models.JSONField(default=list, help_text='OrderItem ids settled by this session')),
                ('subtotal', models.DecimalField(decimal_places=2, max_digits=14)),
                ('service_charge', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('total', models.DecimalField(decimal_places=2, max_digits=14)),
                ('payment_type', models.CharField(max_length=10)),
                ('split_cash', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('split_card', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('split_click', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('comment', models.TextField(blank=True)),
                ('paid_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('paid_by_id', models.UUIDField(blank=True, null=True)),
                ('paid_by_name', models.CharField(blank=True, max_length=200)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payment_sessions', to='orders.order')),
            ],
            options={
                'ordering': ['paid_at'],
                'indexes': [
                    models.Index(fields=['order', 'paid_at'], name='payment_session_order_idx'),
                ],
            },
        ),
    ]
