import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Establishment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('type', models.CharField(choices=[('pharmacy', 'Pharmacie'), ('parapharmacy', 'Parapharmacie'), ('wholesaler', 'Grossiste'), ('clinic', 'Clinique'), ('other', 'Autre')], default='pharmacy', max_length=20)),
                ('address', models.CharField(blank=True, max_length=255)),
                ('city', models.CharField(blank=True, max_length=100)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('is_principal', models.BooleanField(default=False)),
                ('is_manual', models.BooleanField(default=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('account', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='establishments', to=settings.AUTH_USER_MODEL)),
                ('linked_account', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='linked_establishments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'establishments',
                'ordering': ['-is_principal', 'name'],
                'indexes': [
                    models.Index(fields=['account', 'is_active'], name='establishme_account_2b1f0e_idx'),
                    models.Index(fields=['name'], name='establishme_name_6c7d41_idx'),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name='establishment',
            constraint=models.UniqueConstraint(condition=models.Q(('is_principal', True)), fields=('account',), name='unique_principal_establishment_per_account'),
        ),
    ]
