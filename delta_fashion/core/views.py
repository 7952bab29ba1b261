import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .models import User, AdminRequest, AuditLog
from .serializers import (
    UserSerializer, RegisterSerializer, ProfileUpdateSerializer, UserUpdateSerializer,
    PasswordChangeSerializer, AdminRequestSerializer, AdminRequestReviewSerializer,
    AuditLogSerializer
)
from .permissions import IsAdminRole, is_owner_or_admin
from .pagination import paginated_response
from .storage import save_image, delete_image, validate_uploads
from .emails import send_admin_request_decision
from .utils import create_audit_log, parse_bool, parse_date, parse_request_data

logger = logging.getLogger(__name__)

FORBIDDEN = {'message': 'Access denied.'}


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    default_error_messages = {
        'no_active_account': 'Invalid email or password.',
    }

    def validate(self, attrs):
        email = attrs.get(self.username_field, '')
        attrs[self.username_field] = email.strip().lower()
        user = User.objects.filter(email=attrs[self.username_field]).first()
        if user and not user.is_active and user.check_password(attrs.get('password', '')):
            raise AuthenticationFailed('Account disabled. Contact the administrator.')

        data = super().validate(attrs)
        data['message'] = 'Login successful'
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


def issue_tokens(user):
    refresh = CustomTokenObtainPairSerializer.get_token(user)
    return {
        'access': str(refresh.access_token),
        'refresh': str(refresh),
    }


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        user = serializer.save()
    except Exception as e:
        logger.error(f"Registration failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error creating account.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    logger.info(f"New account registered: {user.email}")
    return Response({
        'message': 'Account created successfully',
        'user': UserSerializer(user).data,
        **issue_tokens(user),
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user"""
    return Response({'user': UserSerializer(request.user).data})


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def update_profile(request):
    """Update the current user's profile, optionally replacing the avatar"""
    user = request.user
    data = parse_request_data(request, json_fields=['address'])
    serializer = ProfileUpdateSerializer(user, data=data, partial=True)
    serializer.is_valid(raise_exception=True)

    avatar = request.FILES.get('avatar')
    if avatar:
        validate_uploads([avatar], field_name='avatar')
    previous = user.avatar
    stored = None
    try:
        with transaction.atomic():
            user = serializer.save()
            if avatar:
                stored = save_image(avatar, field_name='avatar')
                user.avatar = stored
                user.save(update_fields=['avatar', 'updated_at'])
    except ValidationError:
        delete_image(stored)
        raise
    except Exception as e:
        delete_image(stored)
        logger.error(f"Profile update of user #{user.pk} failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating profile.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    if stored:
        delete_image(previous)

    return Response({
        'message': 'Profile updated successfully',
        'user': UserSerializer(user).data,
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password(request):
    """Change the current user's password"""
    serializer = PasswordChangeSerializer(data=request.data, context={'request': request})
    serializer.is_valid(raise_exception=True)
    request.user.set_password(serializer.validated_data['new_password'])
    try:
        request.user.save(update_fields=['password', 'updated_at'])
    except Exception as e:
        logger.error(f"Password change for {request.user.email} failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error changing password.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return Response({'message': 'Password changed successfully'})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Tokens are stateless; the client drops them"""
    return Response({'message': 'Logged out successfully'})


# User views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_list(request):
    """Admins get every user (filtered, paginated); others only themselves"""
    if not request.user.is_admin:
        return Response({
            'results': [UserSerializer(request.user).data],
            'count': 1,
            'next': None,
            'previous': None,
            'page': 1,
            'page_size': 1,
            'total_pages': 1,
        })

    queryset = User.objects.all().order_by('-created_at')

    role = request.query_params.get('role')
    if role:
        queryset = queryset.filter(role=role)

    is_active = request.query_params.get('is_active')
    if is_active is not None and is_active != '':
        queryset = queryset.filter(is_active=parse_bool(is_active))

    search = request.query_params.get('search', '').strip()
    if search:
        queryset = queryset.filter(
            Q(first_name__icontains=search) |
            Q(last_name__icontains=search) |
            Q(email__icontains=search)
        )

    return paginated_response(request, queryset, UserSerializer, default_limit=10, max_limit=100)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'DELETE':
        return delete_user(request, user)

    if not is_owner_or_admin(request.user, user.pk):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response({'user': UserSerializer(user).data})

    data = parse_request_data(request, json_fields=['address'])
    if not request.user.is_admin and ('role' in data or 'is_active' in data):
        return Response(
            {'message': 'Only administrators can change the role or account status.'},
            status=status.HTTP_403_FORBIDDEN
        )

    serializer = UserUpdateSerializer(user, data=data, partial=True)
    serializer.is_valid(raise_exception=True)
    try:
        user = serializer.save()
    except Exception as e:
        logger.error(f"User #{user.pk} update failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating user.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    if request.user.pk != user.pk:
        create_audit_log(
            request=request, action='update', model_name='User', object_id=user.pk,
            object_name=user.email, changes={key: str(value) for key, value in serializer.validated_data.items()}
        )
    return Response({
        'message': 'User updated successfully',
        'user': UserSerializer(user).data,
    })


def delete_user(request, user):
    if not request.user.is_admin:
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    if user.is_admin and User.objects.filter(role=User.ROLE_ADMIN, is_active=True).exclude(pk=user.pk).count() == 0:
        return Response(
            {'message': 'Cannot delete the last administrator.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    if user.orders.exists():
        return Response(
            {'message': 'Cannot delete a user who has orders. Deactivate the account instead.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    user_id, email, avatar = user.pk, user.email, user.avatar
    try:
        user.delete()
    except Exception as e:
        logger.error(f"User #{user_id} deletion failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error deleting user.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    delete_image(avatar)
    create_audit_log(request=request, action='delete', model_name='User', object_id=user_id, object_name=email)
    return Response({'message': 'User deleted successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_orders(request, pk):
    """Orders of one user"""
    from delta_fashion.orders.serializers import OrderListSerializer

    user = get_object_or_404(User, pk=pk)
    if not is_owner_or_admin(request.user, user.pk):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    queryset = user.orders.prefetch_related('items').order_by('-created_at')
    return paginated_response(request, queryset, OrderListSerializer, default_limit=10, max_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_wishlist(request, pk):
    """Active products in the user's wishlist"""
    from delta_fashion.catalog.serializers import ProductListSerializer

    user = get_object_or_404(User, pk=pk)
    if not is_owner_or_admin(request.user, user.pk):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    products = user.wishlist.filter(is_active=True).select_related('category')
    return Response({'wishlist': ProductListSerializer(products, many=True).data})


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_wishlist_item(request, pk, product_id):
    """Add or remove a wishlist product"""
    from delta_fashion.catalog.models import Product

    user = get_object_or_404(User, pk=pk)
    if not is_owner_or_admin(request.user, user.pk):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'POST':
        product = Product.objects.filter(pk=product_id, is_active=True).first()
        if product is None:
            return Response({'message': 'Product not found.'}, status=status.HTTP_404_NOT_FOUND)
        if user.wishlist.filter(pk=product.pk).exists():
            return Response({'message': 'Product is already in the wishlist.'}, status=status.HTTP_400_BAD_REQUEST)
        user.wishlist.add(product)
        return Response({'message': 'Product added to wishlist'}, status=status.HTTP_201_CREATED)

    product = get_object_or_404(Product, pk=product_id)
    user.wishlist.remove(product)
    return Response({'message': 'Product removed from wishlist'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_stats(request):
    """User counts for the admin panel"""
    month_ago = timezone.now() - timedelta(days=30)
    users = User.objects.all()
    return Response({
        'total_users': users.count(),
        'active_users': users.filter(is_active=True).count(),
        'admin_users': users.filter(role=User.ROLE_ADMIN).count(),
        'new_users_30d': users.filter(created_at__gte=month_ago).count(),
    })


# Admin request views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def admin_request_list_create(request):
    """List admin requests (admins) or submit one"""
    if request.method == 'POST':
        if request.user.is_admin:
            return Response({'message': 'You are already an administrator.'}, status=status.HTTP_400_BAD_REQUEST)
        if AdminRequest.objects.filter(user=request.user, status=AdminRequest.STATUS_PENDING).exists():
            return Response(
                {'message': 'You already have a pending admin request.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        serializer = AdminRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            admin_request = serializer.save(user=request.user)
        except Exception as e:
            logger.error(f"Admin request by {request.user.email} failed: {str(e)}", exc_info=True)
            return Response(
                {'message': 'Error submitting admin request.'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        logger.info(f"Admin request #{admin_request.pk} submitted by {request.user.email}")
        return Response({
            'message': 'Admin request submitted',
            'request': AdminRequestSerializer(admin_request).data,
        }, status=status.HTTP_201_CREATED)

    if not request.user.is_admin:
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)

    queryset = AdminRequest.objects.select_related('user', 'reviewed_by').order_by('-created_at')
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    return paginated_response(request, queryset, AdminRequestSerializer, default_limit=10, max_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def admin_request_detail(request, pk):
    admin_request = get_object_or_404(AdminRequest.objects.select_related('user', 'reviewed_by'), pk=pk)
    if not is_owner_or_admin(request.user, admin_request.user_id):
        return Response(FORBIDDEN, status=status.HTTP_403_FORBIDDEN)
    return Response({'request': AdminRequestSerializer(admin_request).data})


def review_admin_request(request, pk, approve):
    serializer = AdminRequestReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    get_object_or_404(AdminRequest, pk=pk)

    try:
        with transaction.atomic():
            admin_request = AdminRequest.objects.select_for_update().select_related('user').get(pk=pk)
            if admin_request.status != AdminRequest.STATUS_PENDING:
                return Response(
                    {'message': 'This request has already been reviewed.'},
                    status=status.HTTP_400_BAD_REQUEST
                )
            admin_request.status = AdminRequest.STATUS_APPROVED if approve else AdminRequest.STATUS_REJECTED
            admin_request.reviewed_by = request.user
            admin_request.reviewed_at = timezone.now()
            admin_request.review_notes = serializer.validated_data.get('review_notes', '')
            admin_request.save()

            if approve:
                admin_request.user.role = User.ROLE_ADMIN
                admin_request.user.save()
    except Exception as e:
        logger.error(f"Review of admin request #{pk} failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error reviewing admin request.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(
        request=request,
        action='admin_request_approve' if approve else 'admin_request_reject',
        model_name='AdminRequest', object_id=admin_request.pk, object_name=admin_request.user.email,
        changes={'review_notes': admin_request.review_notes}
    )
    logger.info(f"Admin request #{admin_request.pk} {admin_request.status} by {request.user.email}")
    send_admin_request_decision(admin_request)
    return Response({
        'message': 'Request approved' if approve else 'Request rejected',
        'request': AdminRequestSerializer(admin_request).data,
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_request_approve(request, pk):
    """Approve a pending request and promote the user"""
    return review_admin_request(request, pk, approve=True)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_request_reject(request, pk):
    """Reject a pending request"""
    return review_admin_request(request, pk, approve=False)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def admin_request_user_status(request):
    """Latest admin request of the current user"""
    latest = AdminRequest.objects.filter(user=request.user).order_by('-created_at').first()
    return Response({
        'has_request': latest is not None,
        'request': AdminRequestSerializer(latest).data if latest else None,
    })


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = parse_date(request.query_params.get('date_from'), 'date_from')
    date_to = parse_date(request.query_params.get('date_to'), 'date_to')
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    return paginated_response(request, queryset, AuditLogSerializer, default_limit=20, max_limit=100)


@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    """Liveness check"""
    return Response({
        'status': 'OK',
        'message': 'Delta Fashion API is running',
        'timestamp': timezone.now().isoformat(),
    })
