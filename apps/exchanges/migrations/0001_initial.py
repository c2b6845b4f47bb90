import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


STATUS_CHOICES = [
    ('draft', 'Draft'),
    ('pending_acceptance', 'Pending acceptance'),
    ('accepted', 'Accepted'),
    ('pending_payment', 'Pending payment'),
    ('payment_confirmed', 'Payment confirmed'),
    ('closed', 'Closed'),
    ('refused', 'Refused'),
    ('cancelled', 'Cancelled'),
]

ACTION_CHOICES = [
    ('create', 'Create'),
    ('edit_lines', 'Edit lines'),
    ('send', 'Send'),
    ('accept', 'Accept'),
    ('refuse', 'Refuse'),
    ('confirm_payment', 'Confirm payment'),
    ('close', 'Close'),
    ('cancel', 'Cancel'),
    ('delete', 'Delete'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('establishments', '0001_initial'),
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Exchange',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reference', models.CharField(editable=False, max_length=32)),
                ('direction', models.CharField(choices=[('outgoing', 'Outgoing'), ('incoming', 'Incoming')], default='outgoing', max_length=10)),
                ('is_manual', models.BooleanField(default=True)),
                ('status', models.CharField(choices=STATUS_CHOICES, db_index=True, default='draft', max_length=20)),
                ('total_articles', models.PositiveIntegerField(default=0)),
                ('total_quantity', models.PositiveIntegerField(default=0)),
                ('estimated_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('amount_due', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('payment_method', models.CharField(blank=True, choices=[('cash', 'Cash'), ('check', 'Check'), ('transfer', 'Bank transfer'), ('card', 'Card'), ('other', 'Other')], max_length=20, null=True)),
                ('payment_note', models.TextField(blank=True)),
                ('reason', models.TextField(blank=True)),
                ('note', models.TextField(blank=True)),
                ('refusal_reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('received_at', models.DateTimeField(blank=True, null=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('refused_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('establishment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='exchanges', to='establishments.establishment')),
                ('partner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='partner_exchanges', to='establishments.establishment')),
                ('counterparty_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_exchanges', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_exchanges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'exchanges',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['establishment', 'status'], name='exchanges_establi_9c21d4_idx'),
                    models.Index(fields=['counterparty_account', 'status'], name='exchanges_counter_4e7f12_idx'),
                    models.Index(fields=['created_at'], name='exchanges_created_b30a97_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('establishment', 'reference'), name='unique_exchange_reference_per_establishment'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ExchangeLine',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveIntegerField(default=0)),
                ('product_name', models.CharField(max_length=200)),
                ('product_code', models.CharField(blank=True, max_length=64, null=True)),
                ('lot_number', models.CharField(blank=True, max_length=100, null=True)),
                ('quantity', models.PositiveIntegerField(validators=[MinValueValidator(1)])),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, validators=[MinValueValidator(Decimal('0.00'))])),
                ('line_total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('expiration_date', models.DateField(blank=True, null=True)),
                ('note', models.TextField(blank=True, null=True)),
                ('exchange', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='exchanges.exchange')),
                ('stock_lot', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='exchange_lines', to='inventory.stocklot')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='exchange_lines', to='inventory.product')),
            ],
            options={
                'db_table': 'exchange_lines',
                'ordering': ['position'],
            },
        ),
        migrations.CreateModel(
            name='ReferenceSequence',
            fields=[
                ('establishment', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='exchange_reference_sequence', serialize=False, to='establishments.establishment')),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
            options={
                'db_table': 'exchange_reference_sequences',
            },
        ),
        migrations.CreateModel(
            name='ExchangeEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reference', models.CharField(max_length=32)),
                ('action', models.CharField(choices=ACTION_CHOICES, max_length=20)),
                ('status_before', models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20)),
                ('status_after', models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20)),
                ('description', models.CharField(max_length=255)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('exchange', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='events', to='exchanges.exchange')),
                ('establishment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='exchange_events', to='establishments.establishment')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='exchange_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'exchange_events',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['exchange', 'created_at'], name='exchange_ev_exchang_1d6b8f_idx'),
                ],
            },
        ),
    ]
