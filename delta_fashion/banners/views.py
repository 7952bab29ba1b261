import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from delta_fashion.core.authentication import OptionalJWTAuthentication
from delta_fashion.core.permissions import IsAdminRole, IsAdminRoleOrReadOnly
from delta_fashion.core.storage import save_image, delete_image, validate_uploads
from delta_fashion.core.utils import create_audit_log, parse_bool, parse_request_data
from .models import Banner
from .serializers import BannerSerializer, BannerWriteSerializer

logger = logging.getLogger(__name__)


def is_admin(user):
    return bool(user and user.is_authenticated and user.role == 'admin')


@api_view(['GET', 'POST'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def banner_list_create(request):
    """Live banners for the storefront, or every banner for admins"""
    if request.method == 'GET':
        if parse_bool(request.query_params.get('include_inactive')) and is_admin(request.user):
            banners = Banner.objects.order_by('order', '-created_at')
        else:
            banners = Banner.objects.live()
        return Response({'banners': BannerSerializer(banners, many=True).data})

    image = request.FILES.get('image')
    validate_uploads([image] if image else [], field_name='image', required=True)
    serializer = BannerWriteSerializer(data=parse_request_data(request))
    serializer.is_valid(raise_exception=True)

    reference = None
    try:
        reference = save_image(image, field_name='image')
        with transaction.atomic():
            banner = serializer.save(image=reference)
    except ValidationError:
        delete_image(reference)
        raise
    except Exception as e:
        delete_image(reference)
        logger.error(f"Banner creation failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error creating banner.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(request=request, action='create', model_name='Banner', object_id=banner.pk, object_name=banner.title)
    logger.info(f"Banner #{banner.pk} '{banner.title}' created by {request.user.email}")
    return Response({
        'message': 'Banner created successfully',
        'banner': BannerSerializer(banner).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def banner_detail(request, pk):
    """Retrieve, update or delete a banner"""
    banner = get_object_or_404(Banner, pk=pk)

    if request.method == 'GET':
        return Response({'banner': BannerSerializer(banner).data})

    if request.method == 'DELETE':
        banner_id, title, image = banner.pk, banner.title, banner.image
        try:
            banner.delete()
        except Exception as e:
            logger.error(f"Banner #{banner_id} deletion failed: {str(e)}", exc_info=True)
            return Response(
                {'message': 'Error deleting banner.'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        delete_image(image)
        create_audit_log(request=request, action='delete', model_name='Banner', object_id=banner_id, object_name=title)
        return Response({'message': 'Banner deleted successfully'})

    image = request.FILES.get('image')
    if image:
        validate_uploads([image], field_name='image')
    serializer = BannerWriteSerializer(banner, data=parse_request_data(request), partial=True)
    serializer.is_valid(raise_exception=True)

    previous_image = banner.image
    new_reference = None
    try:
        new_reference = save_image(image, field_name='image') if image else None
        with transaction.atomic():
            if new_reference:
                banner = serializer.save(image=new_reference)
            else:
                banner = serializer.save()
    except ValidationError:
        delete_image(new_reference)
        raise
    except Exception as e:
        delete_image(new_reference)
        logger.error(f"Banner #{banner.pk} update failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating banner.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    if new_reference:
        delete_image(previous_image)

    create_audit_log(
        request=request, action='update', model_name='Banner', object_id=banner.pk, object_name=banner.title,
        changes={key: str(value) for key, value in serializer.validated_data.items()}
    )
    return Response({
        'message': 'Banner updated successfully',
        'banner': BannerSerializer(banner).data,
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def banner_toggle(request, pk):
    """Flip a banner's is_active flag"""
    banner = get_object_or_404(Banner, pk=pk)
    banner.is_active = not banner.is_active
    try:
        banner.save(update_fields=['is_active', 'updated_at'])
    except Exception as e:
        logger.error(f"Banner #{banner.pk} toggle failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating banner.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    create_audit_log(
        request=request, action='update', model_name='Banner', object_id=banner.pk,
        object_name=banner.title, changes={'is_active': banner.is_active}
    )
    return Response({
        'message': 'Banner activated' if banner.is_active else 'Banner deactivated',
        'banner': BannerSerializer(banner).data,
    })
