from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from .models import BLOOD_GROUP_CHOICES, CONSENT_CHOICES, Donor, Donation, InventoryEntry, BloodRequest, Event

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'username', 'role', 'first_name', 'last_name']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=True, validators=[validate_password])
    password2 = serializers.CharField(write_only=True, required=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password2', 'first_name', 'last_name']

    def validate(self, attrs):
        if attrs['password'] != attrs['password2']:
            raise serializers.ValidationError({"password": "Passwords didn't match."})

        if User.objects.filter(username=attrs['username']).exists():
            raise serializers.ValidationError({"username": "A user with that username already exists."})

        if User.objects.filter(email=attrs['email']).exists():
            raise serializers.ValidationError({"email": "A user with that email already exists."})

        return attrs

    def create(self, validated_data):
        validated_data.pop('password2')
        password = validated_data.pop('password')

        # self-registration never grants admin
        user = User(
            email=validated_data['email'],
            username=validated_data['username'],
            role='user',
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', '')
        )
        user.set_password(password)
        user.save()
        return user


# -------------------------------
# Donors
# -------------------------------
class DonorSerializer(serializers.ModelSerializer):
    effective_status = serializers.CharField(read_only=True)
    badge = serializers.CharField(read_only=True)

    class Meta:
        model = Donor
        fields = [
            'id', 'national_id', 'name', 'email', 'phone', 'blood_group', 'address',
            'age', 'weight', 'donate_consent', 'profile_photo_url',
            'last_donation_date', 'status', 'effective_status', 'next_eligible_date',
            'total_donations', 'points', 'badge', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DonorProfileInputSerializer(serializers.Serializer):
    """Editable profile fields. Partial by default for updates."""
    national_id = serializers.CharField(max_length=32)
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    blood_group = serializers.ChoiceField(choices=BLOOD_GROUP_CHOICES)
    address = serializers.CharField(required=False, allow_blank=True)
    age = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    weight = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, required=False, allow_null=True)
    donate_consent = serializers.ChoiceField(choices=CONSENT_CHOICES, required=False)


class WalkInDonationSerializer(DonorProfileInputSerializer):
    amount = serializers.IntegerField(min_value=1, default=1)
    date = serializers.DateTimeField(required=False, input_formats=['iso-8601', '%Y-%m-%d'])


class PhotoReferenceSerializer(serializers.Serializer):
    profile_photo_url = serializers.CharField(max_length=500)


# -------------------------------
# Donations
# -------------------------------
class DonationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Donation
        fields = ['id', 'donor', 'donor_name', 'amount', 'date', 'created_at']
        read_only_fields = fields


class RecordDonationSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    date = serializers.DateTimeField(required=False, input_formats=['iso-8601', '%Y-%m-%d'])


# -------------------------------
# Inventory
# -------------------------------
class InventoryEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryEntry
        fields = ['blood_group', 'units', 'last_updated']
        read_only_fields = fields


class StockChangeSerializer(serializers.Serializer):
    blood_group = serializers.ChoiceField(choices=BLOOD_GROUP_CHOICES)
    units = serializers.IntegerField(min_value=1)


class PotentialDonorSerializer(serializers.Serializer):
    blood_group = serializers.CharField()
    available_donors = serializers.IntegerField()
    updated_at = serializers.DateTimeField()


# -------------------------------
# Requests
# -------------------------------
class BloodRequestSerializer(serializers.ModelSerializer):
    requested_by = UserSerializer(read_only=True)

    class Meta:
        model = BloodRequest
        fields = '__all__'
        read_only_fields = ['status', 'requested_by']


class RequestStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BloodRequest.STATUS_CHOICES)


# -------------------------------
# Events & leaderboard
# -------------------------------
class EventSerializer(serializers.ModelSerializer):
    class Meta:
        model = Event
        fields = '__all__'
        read_only_fields = ['photos', 'created_at']


class EventPhotosSerializer(serializers.Serializer):
    photos = serializers.ListField(child=serializers.CharField(max_length=500), allow_empty=False, max_length=10)


class EventPhotoReferenceSerializer(serializers.Serializer):
    photo_url = serializers.CharField(max_length=500)


class LeaderboardEntrySerializer(serializers.Serializer):
    rank = serializers.IntegerField()
    donor = DonorSerializer()
    total_donations = serializers.IntegerField()
    points = serializers.IntegerField()
    badge = serializers.CharField()


class LeaderboardQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, required=False)
