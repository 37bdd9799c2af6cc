from django.urls import path, include
from rest_framework import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views import (
    RegisterAPI, MeAPI, HealthAPI, DonorViewSet, InventoryViewSet, BloodRequestViewSet,
    EventViewSet, LeaderboardAPI, PotentialDonorsAPI, MyProfileAPI, MyProfilePhotoAPI,
    MyDonationsAPI,
)

# Router for API endpoints
router = routers.DefaultRouter()
router.register('donors', DonorViewSet, basename='donors')
router.register('inventory', InventoryViewSet, basename='inventory')
router.register('requests', BloodRequestViewSet, basename='requests')
router.register('events', EventViewSet, basename='events')

# URL patterns
urlpatterns = [
    path('api/health/', HealthAPI.as_view(), name='health'),
    path('api/', include(router.urls)),

    # Read-only projections
    path('api/potential-donors/', PotentialDonorsAPI.as_view(), name='potential_donors'),
    path('api/leaderboard/', LeaderboardAPI.as_view(), name='leaderboard'),

    # Self-service profile
    path('api/me/profile/', MyProfileAPI.as_view(), name='my_profile'),
    path('api/me/profile/photo/', MyProfilePhotoAPI.as_view(), name='my_profile_photo'),
    path('api/me/donations/', MyDonationsAPI.as_view(), name='my_donations'),

    # Authentication endpoints
    path('api/auth/register/', RegisterAPI.as_view(), name='register'),
    path('api/auth/login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/auth/me/', MeAPI.as_view(), name='me'),
]
