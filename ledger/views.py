from django.apps import apps

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Event
from .serializers import (
    UserSerializer, RegisterSerializer, DonorSerializer, DonorProfileInputSerializer,
    WalkInDonationSerializer, PhotoReferenceSerializer, DonationSerializer,
    RecordDonationSerializer, InventoryEntrySerializer, StockChangeSerializer,
    PotentialDonorSerializer, BloodRequestSerializer, RequestStatusSerializer,
    EventSerializer, EventPhotosSerializer, EventPhotoReferenceSerializer,
    LeaderboardEntrySerializer, LeaderboardQuerySerializer,
)


# -------------------------------
# Custom Permission Classes
# -------------------------------
class IsAdmin(permissions.BasePermission):
    """Allow access only to admin users"""
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == 'admin'


class IsAdminOrReadOnly(permissions.BasePermission):
    """Any authenticated user may read; only admins may write"""
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.role == 'admin'


class LedgerMixin:
    """Gives views the shared Ledger built when the app loaded."""

    @property
    def ledger(self):
        return apps.get_app_config('ledger').ledger


class DonationPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 200


def paginated_donations(view, request, queryset):
    paginator = DonationPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    return paginator.get_paginated_response(DonationSerializer(page, many=True).data)


# -------------------------------
# Authentication & User APIs
# -------------------------------
class RegisterAPI(APIView):
    """User registration; every new account gets the plain user role"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class MeAPI(APIView):
    def get(self, request):
        return Response(UserSerializer(request.user).data)


class HealthAPI(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({'status': 'ok'})


# -------------------------------
# Donors
# -------------------------------
class DonorViewSet(LedgerMixin, viewsets.ViewSet):
    """Donor registry (admin only)"""
    permission_classes = [IsAdmin]

    def list(self, request):
        donors = self.ledger.donors.list()
        blood_group = request.query_params.get('blood_group')
        if blood_group:
            donors = donors.filter(blood_group=blood_group)
        return Response(DonorSerializer(donors, many=True).data)

    def retrieve(self, request, pk=None):
        return Response(DonorSerializer(self.ledger.donors.get(pk)).data)

    def create(self, request):
        serializer = DonorProfileInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donor = self.ledger.donors.create(**serializer.validated_data)
        return Response(DonorSerializer(donor).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = DonorProfileInputSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        donor = self.ledger.donors.update(pk, **serializer.validated_data)
        return Response(DonorSerializer(donor).data)

    def destroy(self, request, pk=None):
        self.ledger.donors.delete(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get', 'post'])
    def donations(self, request, pk=None):
        """List a donor's donations, or record a new one"""
        if request.method == 'GET':
            return paginated_donations(self, request, self.ledger.donations.list_donations(pk))

        serializer = RecordDonationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donor, donation = self.ledger.donations.record_donation(
            pk, serializer.validated_data['amount'], serializer.validated_data.get('date'),
        )
        return Response({
            'message': 'Donation recorded successfully',
            'donor': DonorSerializer(donor).data,
            'donation': DonationSerializer(donation).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='walk-in')
    def walk_in(self, request):
        """Record a donation by identity, registering the donor on first visit"""
        serializer = WalkInDonationSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        amount = data.pop('amount', 1)
        when = data.pop('date', None)
        donor, donation, created = self.ledger.donations.record_walk_in(
            data.pop('national_id', None), amount, when, **data,
        )
        return Response({
            'message': 'New donor added and first donation recorded!' if created else 'Donor updated and donation recorded!',
            'donor': DonorSerializer(donor).data,
            'donation': DonationSerializer(donation).data,
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


class LeaderboardAPI(LedgerMixin, APIView):
    def get(self, request):
        query = LeaderboardQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        entries = self.ledger.leaderboard.rank(query.validated_data.get('limit'))
        return Response(LeaderboardEntrySerializer(entries, many=True).data)


class PotentialDonorsAPI(LedgerMixin, APIView):
    """Donor availability per blood group (people, not stock units)"""
    def get(self, request):
        return Response(PotentialDonorSerializer(self.ledger.potential_donors.aggregate(), many=True).data)


# -------------------------------
# Self-service profile
# -------------------------------
class MyProfileAPI(LedgerMixin, APIView):
    def get(self, request):
        donor = self.ledger.donors.find_by_owner(request.user)
        return Response(DonorSerializer(donor).data if donor else None)

    def put(self, request):
        donor = self.ledger.donors.find_by_owner(request.user)
        serializer = DonorProfileInputSerializer(data=request.data, partial=donor is not None)
        serializer.is_valid(raise_exception=True)
        donor = self.ledger.donors.save_owner_profile(request.user, **serializer.validated_data)
        return Response(DonorSerializer(donor).data)


class MyProfilePhotoAPI(LedgerMixin, APIView):
    def post(self, request):
        serializer = PhotoReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donor = self.ledger.donors.attach_photo(request.user, serializer.validated_data['profile_photo_url'])
        return Response({'profile_photo_url': donor.profile_photo_url})


class MyDonationsAPI(LedgerMixin, APIView):
    def get(self, request):
        return paginated_donations(self, request, self.ledger.donations.list_donations_for_owner(request.user))


# -------------------------------
# Inventory
# -------------------------------
class InventoryViewSet(LedgerMixin, viewsets.ViewSet):
    """Blood stock per group; changes are admin only"""
    permission_classes = [IsAdminOrReadOnly]
    lookup_field = 'blood_group'
    lookup_value_regex = '(?:A|B|AB|O)[+-]'

    def list(self, request):
        return Response(InventoryEntrySerializer(self.ledger.inventory.list_all(), many=True).data)

    def retrieve(self, request, blood_group=None):
        return Response(InventoryEntrySerializer(self.ledger.inventory.get(blood_group)).data)

    @action(detail=False, methods=['post'])
    def add(self, request):
        serializer = StockChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = self.ledger.inventory.add(**serializer.validated_data)
        return Response(InventoryEntrySerializer(entry).data)

    @action(detail=False, methods=['post'])
    def remove(self, request):
        serializer = StockChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = self.ledger.inventory.remove(**serializer.validated_data)
        return Response(InventoryEntrySerializer(entry).data)


# -------------------------------
# Blood Request ViewSet
# -------------------------------
class BloodRequestViewSet(LedgerMixin, viewsets.ViewSet):
    """Any user may open a request; only admins resolve or delete them"""

    def get_permissions(self):
        if self.action in ('set_status', 'destroy'):
            return [IsAdmin()]
        return [permissions.IsAuthenticated()]

    def list(self, request):
        return Response(BloodRequestSerializer(self.ledger.requests.list(), many=True).data)

    def retrieve(self, request, pk=None):
        return Response(BloodRequestSerializer(self.ledger.requests.get(pk)).data)

    def create(self, request):
        serializer = BloodRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = self.ledger.requests.create(requested_by=request.user, **serializer.validated_data)
        return Response(BloodRequestSerializer(blood_request).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put', 'post'], url_path='status')
    def set_status(self, request, pk=None):
        serializer = RequestStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = self.ledger.requests.set_status(pk, serializer.validated_data['status'])
        return Response(BloodRequestSerializer(blood_request).data)

    def destroy(self, request, pk=None):
        self.ledger.requests.delete(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# -------------------------------
# Events
# -------------------------------
class EventViewSet(LedgerMixin, viewsets.ModelViewSet):
    queryset = Event.objects.all()
    serializer_class = EventSerializer
    permission_classes = [IsAdminOrReadOnly]
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    @action(detail=True, methods=['get'])
    def donations(self, request, pk=None):
        """Donations recorded on the event's calendar day"""
        event = self.get_object()
        donations = self.ledger.donations.list_donations_on(event.date)
        return Response(DonationSerializer(donations, many=True).data)

    @action(detail=True, methods=['post', 'delete'])
    def photos(self, request, pk=None):
        """Attach photo references to an event, or remove one by reference"""
        if request.method == 'POST':
            serializer = EventPhotosSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            event = self.ledger.events.add_photos(pk, serializer.validated_data['photos'])
            return Response({'message': 'Photos added successfully', 'photos': event.photos})

        serializer = EventPhotoReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = self.ledger.events.remove_photo(pk, serializer.validated_data['photo_url'])
        return Response({'message': 'Photo removed successfully', 'photos': event.photos})
