from django.db import models
from django.db.models import F, Q
from django.contrib.auth.models import AbstractUser
from django.utils import timezone

from .eligibility import ELIGIBLE, INELIGIBLE, POINTS_PER_DONATION, badge_tier, effective_status
from .managers import DonorQuerySet, DonationQuerySet, InventoryQuerySet, BloodRequestQuerySet

BLOOD_GROUP_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]

BLOOD_GROUPS = [value for value, _ in BLOOD_GROUP_CHOICES]

ROLE_CHOICES = [
    ('admin', 'Admin'),
    ('user', 'User'),
]

CONSENT_CHOICES = [
    ('Yes', 'Yes'),
    ('No', 'No'),
]


class User(AbstractUser):
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='user')
    # email is used for login
    email = models.EmailField(unique=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    @property
    def is_ledger_admin(self):
        return self.role == 'admin'

    def __str__(self):
        return f"{self.email} ({self.role})"


class Donor(models.Model):
    STATUS_CHOICES = [
        (ELIGIBLE, 'Eligible'),
        (INELIGIBLE, 'Ineligible'),
    ]

    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='donor')
    national_id = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    address = models.TextField(blank=True)
    age = models.PositiveIntegerField(null=True, blank=True)
    weight = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    donate_consent = models.CharField(max_length=3, choices=CONSENT_CHOICES, default='No')
    profile_photo_url = models.CharField(max_length=500, blank=True, default='')

    # donation-derived fields, written only by the donation ledger
    last_donation_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=ELIGIBLE)
    next_eligible_date = models.DateField(null=True, blank=True)
    total_donations = models.PositiveIntegerField(default=0)
    points = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DonorQuerySet.as_manager()

    class Meta:
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=Q(points=F('total_donations') * POINTS_PER_DONATION),
                name='donor_points_match_donations',
            ),
        ]

    @property
    def effective_status(self):
        return effective_status(self.status, self.next_eligible_date)

    @property
    def badge(self):
        return badge_tier(self.total_donations)

    def __str__(self):
        return f"{self.name} ({self.national_id}) - {self.blood_group}"


class Donation(models.Model):
    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='donations')
    donor_name = models.CharField(max_length=200)
    amount = models.PositiveIntegerField()
    date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DonationQuerySet.as_manager()

    class Meta:
        ordering = ['-date', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='donation_amount_positive'),
        ]

    def __str__(self):
        return f"{self.donor_name} - {self.amount} unit(s) on {self.date:%Y-%m-%d}"


class InventoryEntry(models.Model):
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, unique=True)
    units = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(default=timezone.now)

    objects = InventoryQuerySet.as_manager()

    class Meta:
        ordering = ['blood_group']
        verbose_name_plural = 'inventory entries'
        constraints = [
            models.CheckConstraint(condition=Q(units__gte=0), name='inventory_units_non_negative'),
        ]

    def __str__(self):
        return f"{self.blood_group}: {self.units}"


class BloodRequest(models.Model):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'
    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    ]
    DELETABLE_STATUSES = (APPROVED, REJECTED)

    URGENCY_CHOICES = [
        ('Low', 'Low'),
        ('Medium', 'Medium'),
        ('High', 'High'),
    ]

    patient_name = models.CharField(max_length=200)
    requester_ref = models.CharField(max_length=100)
    requested_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='blood_requests'
    )
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES)
    units = models.PositiveIntegerField()
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    request_date = models.DateTimeField(default=timezone.now)

    objects = BloodRequestQuerySet.as_manager()

    class Meta:
        ordering = ['-request_date', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(units__gt=0), name='request_units_positive'),
        ]

    def __str__(self):
        return f"{self.patient_name} - {self.blood_group} x{self.units} ({self.status})"


class Event(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    date = models.DateTimeField()
    location = models.CharField(max_length=255, blank=True)
    organizer = models.CharField(max_length=200, blank=True)
    photos = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['date', 'id']

    def __str__(self):
        return f"{self.title} on {self.date:%Y-%m-%d}"
