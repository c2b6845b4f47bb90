from django.db import models
import uuid


class EstablishmentType(models.TextChoices):
    PHARMACY = 'pharmacy', 'Pharmacie'
    PARAPHARMACY = 'parapharmacy', 'Parapharmacie'
    WHOLESALER = 'wholesaler', 'Grossiste'
    CLINIC = 'clinic', 'Clinique'
    OTHER = 'other', 'Autre'


class Establishment(models.Model):
    """
    Entry in an account's establishment directory.

    The principal entry is the account's own establishment. Every other entry
    is a partner: either a manual contact with no account of its own, or a
    linked partner pointing at another account of the system.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Directory owner (tenant)
    account = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='establishments'
    )

    name = models.CharField(max_length=200)
    type = models.CharField(
        max_length=20,
        choices=EstablishmentType.choices,
        default=EstablishmentType.PHARMACY
    )
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)

    is_principal = models.BooleanField(default=False)
    is_manual = models.BooleanField(default=True)

    # Partner's own account (linked partners only)
    linked_account = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='linked_establishments'
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'establishments'
        indexes = [
            models.Index(fields=['account', 'is_active'], name='establishme_account_2b1f0e_idx'),
            models.Index(fields=['name'], name='establishme_name_6c7d41_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['account'],
                condition=models.Q(is_principal=True),
                name='unique_principal_establishment_per_account',
            ),
        ]
        ordering = ['-is_principal', 'name']

    def __str__(self):
        return self.name

    @property
    def is_linked(self):
        return not self.is_manual and self.linked_account_id is not None
