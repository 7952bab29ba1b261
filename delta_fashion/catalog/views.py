import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from delta_fashion.core.authentication import OptionalJWTAuthentication
from delta_fashion.core.pagination import paginated_response
from delta_fashion.core.permissions import IsAdminRole, IsAdminRoleOrReadOnly
from delta_fashion.core.storage import save_image, save_images, delete_image, delete_images, validate_uploads
from delta_fashion.core.utils import create_audit_log, parse_bool, parse_request_data
from .filters import filter_products
from .models import Category, Product, ProductReview
from .serializers import (
    CategorySerializer, CategoryDetailSerializer, CategoryTreeSerializer, CategoryWriteSerializer,
    ProductListSerializer, ProductDetailSerializer, ProductWriteSerializer, ProductReviewSerializer
)

logger = logging.getLogger(__name__)

PRODUCT_JSON_FIELDS = ['variants', 'colors', 'sizes', 'tags', 'dimensions']
HIGHLIGHT_LIMIT = 8


def is_admin(user):
    return bool(user and user.is_authenticated and user.role == 'admin')


def product_queryset():
    return Product.objects.select_related('category', 'sub_category')


def parse_image_list(data, field):
    """Read a JSON list of image references sent alongside a multipart form"""
    value = data.pop(field, None)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError({field: ['Must be a list of image references.']})
    return value


# Product views
@api_view(['GET', 'POST'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def product_list_create(request):
    """List active products or create a new product"""
    if request.method == 'GET':
        queryset = product_queryset().filter(is_active=True)
        queryset = filter_products(request.query_params, queryset)
        return paginated_response(request, queryset, ProductListSerializer, default_limit=12, max_limit=50)

    files = validate_uploads(request.FILES.getlist('images'), field_name='images', required=True)
    data = parse_request_data(request, json_fields=PRODUCT_JSON_FIELDS)
    data.setdefault('is_featured', True)
    serializer = ProductWriteSerializer(data=data)
    serializer.is_valid(raise_exception=True)

    stored = []
    try:
        stored = save_images(files, field_name='images')
        with transaction.atomic():
            product = serializer.save(images=stored)
    except IntegrityError as e:
        delete_images(stored)
        logger.warning(f"Product creation rejected: {str(e)}")
        return Response(
            {'message': 'A product with this name or SKU already exists.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except ValidationError:
        delete_images(stored)
        raise
    except Exception as e:
        delete_images(stored)
        logger.error(f"Product creation failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error creating product.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(
        request=request, action='create', model_name='Product', object_id=product.pk,
        object_name=product.name, changes={'price': str(product.price), 'images': len(stored)}
    )
    logger.info(f"Product #{product.pk} '{product.name}' created by {request.user.email}")
    return Response({
        'message': 'Product created successfully',
        'product': ProductDetailSerializer(product).data,
    }, status=status.HTTP_201_CREATED)


def highlight_response(request, queryset):
    try:
        limit = int(request.query_params.get('limit', HIGHLIGHT_LIMIT))
    except (TypeError, ValueError):
        raise ValidationError({'limit': ['Limit must be between 1 and 50.']})
    if limit < 1 or limit > 50:
        raise ValidationError({'limit': ['Limit must be between 1 and 50.']})
    products = queryset[:limit]
    return Response({'products': ProductListSerializer(products, many=True).data})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([])
def featured_products(request):
    """Featured products, newest first"""
    queryset = product_queryset().filter(is_active=True, is_featured=True).order_by('-created_at')
    return highlight_response(request, queryset)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([])
def new_products(request):
    """Products flagged as new arrivals"""
    queryset = product_queryset().filter(is_active=True, is_new=True).order_by('-created_at')
    return highlight_response(request, queryset)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([])
def sale_products(request):
    """Discounted products, biggest discount first"""
    queryset = product_queryset().filter(is_active=True, discount__gt=0).order_by('-discount', '-created_at')
    return highlight_response(request, queryset)


def product_detail_response(request, product):
    if not product.is_active and not is_admin(request.user):
        return Response({'message': 'Product not found.'}, status=status.HTTP_404_NOT_FOUND)
    product.increment_view_count()
    return Response({'product': ProductDetailSerializer(product).data})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(
        product_queryset().prefetch_related('variants', 'reviews__user'), pk=pk
    )

    if request.method == 'GET':
        return product_detail_response(request, product)

    if request.method == 'DELETE':
        product_id, name, images = product.pk, product.name, list(product.images or [])
        try:
            product.delete()
        except Exception as e:
            logger.error(f"Product #{product_id} deletion failed: {str(e)}", exc_info=True)
            return Response(
                {'message': 'Error deleting product.'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        removed = delete_images(images)
        create_audit_log(request=request, action='delete', model_name='Product', object_id=product_id, object_name=name)
        logger.info(f"Product #{product_id} deleted ({removed} image file(s) removed)")
        return Response({'message': 'Product deleted successfully'})

    return update_product(request, product)


def update_product(request, product):
    """Partial update; images are kept, appended and removed explicitly"""
    files = validate_uploads(request.FILES.getlist('images'), field_name='images')
    data = parse_request_data(request, json_fields=PRODUCT_JSON_FIELDS + ['existing_images', 'images_to_delete'])
    existing_images = parse_image_list(data, 'existing_images')
    images_to_delete = parse_image_list(data, 'images_to_delete') or []

    serializer = ProductWriteSerializer(product, data=data, partial=True)
    serializer.is_valid(raise_exception=True)

    current_images = list(product.images or [])
    kept = current_images if existing_images is None else [
        reference for reference in existing_images if reference in current_images
    ]
    kept = [reference for reference in kept if reference not in images_to_delete]
    if not kept and not files:
        raise ValidationError({'images': ['A product must have at least one image.']})

    stored = []
    try:
        stored = save_images(files, field_name='images')
        with transaction.atomic():
            product = serializer.save(images=kept + stored)
    except IntegrityError as e:
        delete_images(stored)
        logger.warning(f"Product #{product.pk} update rejected: {str(e)}")
        return Response(
            {'message': 'A product with this name or SKU already exists.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except ValidationError:
        delete_images(stored)
        raise
    except Exception as e:
        delete_images(stored)
        logger.error(f"Product #{product.pk} update failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating product.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Only files this product owned and no longer lists, once the new list is committed
    removed = [reference for reference in current_images if reference not in kept]
    delete_images(removed)

    changes = {key: str(value) for key, value in serializer.validated_data.items() if key != 'variants'}
    if stored or removed:
        changes['images'] = len(product.images)
    create_audit_log(
        request=request, action='update', model_name='Product', object_id=product.pk,
        object_name=product.name, changes=changes
    )
    product = product_queryset().prefetch_related('variants', 'reviews__user').get(pk=product.pk)
    return Response({
        'message': 'Product updated successfully',
        'product': ProductDetailSerializer(product).data,
    })


@api_view(['GET'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([])
def product_by_slug(request, slug):
    product = get_object_or_404(
        product_queryset().prefetch_related('variants', 'reviews__user'), slug=slug
    )
    return product_detail_response(request, product)


@api_view(['GET', 'POST'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([])
def product_reviews(request, pk):
    """List a product's reviews or add the current user's review"""
    product = get_object_or_404(Product, pk=pk, is_active=True)

    if request.method == 'GET':
        reviews = product.reviews.select_related('user')
        return Response({
            'reviews': ProductReviewSerializer(reviews, many=True).data,
            'rating_average': product.rating_average,
            'rating_count': product.rating_count,
        })

    if not request.user or not request.user.is_authenticated:
        return Response(
            {'message': 'Authentication credentials were not provided.'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    serializer = ProductReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    if ProductReview.objects.filter(product=product, user=request.user).exists():
        return Response(
            {'message': 'You have already reviewed this product.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    try:
        with transaction.atomic():
            review = product.add_review(
                request.user,
                serializer.validated_data['rating'],
                serializer.validated_data.get('comment', ''),
            )
    except IntegrityError:
        return Response(
            {'message': 'You have already reviewed this product.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    return Response({
        'message': 'Review added successfully',
        'review': ProductReviewSerializer(review).data,
        'rating_average': product.rating_average,
        'rating_count': product.rating_count,
    }, status=status.HTTP_201_CREATED)


# Category views
def category_queryset():
    return Category.objects.annotate(
        product_count=Count('products', filter=Q(products__is_active=True), distinct=True)
    )


@api_view(['GET', 'POST'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def category_list_create(request):
    """List categories or create a new category"""
    if request.method == 'GET':
        queryset = category_queryset().order_by('order', 'name')
        include_inactive = parse_bool(request.query_params.get('include_inactive'))
        if not (include_inactive and is_admin(request.user)):
            queryset = queryset.filter(is_active=True)
        parent = request.query_params.get('parent')
        if parent == 'root':
            queryset = queryset.filter(parent__isnull=True)
        elif parent:
            queryset = queryset.filter(parent_id=parent)
        return Response({'categories': CategorySerializer(queryset, many=True).data})

    image = request.FILES.get('image')
    if image:
        validate_uploads([image], field_name='image')
    data = parse_request_data(request)
    serializer = CategoryWriteSerializer(data=data)
    serializer.is_valid(raise_exception=True)

    reference = ''
    try:
        reference = save_image(image, field_name='image') if image else ''
        with transaction.atomic():
            category = serializer.save(image=reference)
    except IntegrityError:
        delete_image(reference)
        return Response(
            {'message': 'A category with this name already exists.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except ValidationError:
        delete_image(reference)
        raise
    except Exception as e:
        delete_image(reference)
        logger.error(f"Category creation failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error creating category.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    create_audit_log(request=request, action='create', model_name='Category', object_id=category.pk, object_name=category.name)
    return Response({
        'message': 'Category created successfully',
        'category': CategorySerializer(category).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([])
def category_tree(request):
    """Active root categories with their active subcategories"""
    return Response({'categories': CategoryTreeSerializer(Category.tree(), many=True).data})


def category_detail_response(request, category):
    if not category.is_active and not is_admin(request.user):
        return Response({'message': 'Category not found.'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'category': CategoryDetailSerializer(category).data})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([IsAdminRoleOrReadOnly])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(category_queryset().select_related('parent'), pk=pk)

    if request.method == 'GET':
        return category_detail_response(request, category)

    if request.method == 'DELETE':
        if category.subcategories.exists():
            return Response(
                {'message': 'Cannot delete a category that has subcategories.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if Product.objects.filter(Q(category=category) | Q(sub_category=category)).exists():
            return Response(
                {'message': 'Cannot delete a category that still has products.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        category_id, name, image = category.pk, category.name, category.image
        try:
            category.delete()
        except Exception as e:
            logger.error(f"Category #{category_id} deletion failed: {str(e)}", exc_info=True)
            return Response(
                {'message': 'Error deleting category.'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        delete_image(image)
        create_audit_log(request=request, action='delete', model_name='Category', object_id=category_id, object_name=name)
        return Response({'message': 'Category deleted successfully'})

    image = request.FILES.get('image')
    if image:
        validate_uploads([image], field_name='image')
    data = parse_request_data(request)
    serializer = CategoryWriteSerializer(category, data=data, partial=True)
    serializer.is_valid(raise_exception=True)

    previous_image = category.image
    new_reference = None
    try:
        new_reference = save_image(image, field_name='image') if image else None
        with transaction.atomic():
            if new_reference:
                category = serializer.save(image=new_reference)
            else:
                category = serializer.save()
    except IntegrityError:
        delete_image(new_reference)
        return Response(
            {'message': 'A category with this name already exists.'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except ValidationError:
        delete_image(new_reference)
        raise
    except Exception as e:
        delete_image(new_reference)
        logger.error(f"Category #{category.pk} update failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating category.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    if new_reference:
        delete_image(previous_image)

    create_audit_log(
        request=request, action='update', model_name='Category', object_id=category.pk, object_name=category.name,
        changes={key: str(value) for key, value in serializer.validated_data.items()}
    )
    return Response({
        'message': 'Category updated successfully',
        'category': CategorySerializer(category_queryset().get(pk=category.pk)).data,
    })


@api_view(['GET'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([])
def category_by_slug(request, slug):
    category = get_object_or_404(category_queryset().select_related('parent'), slug=slug)
    return category_detail_response(request, category)


@api_view(['GET'])
@authentication_classes([OptionalJWTAuthentication])
@permission_classes([])
def category_products(request, pk):
    """Active products of a category and its active subcategories"""
    category = get_object_or_404(Category, pk=pk)
    if not category.is_active and not is_admin(request.user):
        return Response({'message': 'Category not found.'}, status=status.HTTP_404_NOT_FOUND)

    category_ids = [category.pk] + list(
        category.subcategories.filter(is_active=True).values_list('pk', flat=True)
    )
    queryset = product_queryset().filter(is_active=True).filter(
        Q(category_id__in=category_ids) | Q(sub_category_id__in=category_ids)
    )
    params = request.query_params.copy()
    params.pop('category', None)
    queryset = filter_products(params, queryset)
    return paginated_response(
        request, queryset, ProductListSerializer, default_limit=12, max_limit=50,
        extra={'category': CategorySerializer(category_queryset().get(pk=category.pk)).data}
    )


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def category_order(request, pk):
    """Set a category's display position"""
    category = get_object_or_404(Category, pk=pk)
    try:
        order = int(request.data.get('order'))
        if order < 0:
            raise ValueError
    except (TypeError, ValueError):
        raise ValidationError({'order': ['Order must be a non-negative integer.']})

    category.order = order
    try:
        category.save(update_fields=['order', 'updated_at'])
    except Exception as e:
        logger.error(f"Category #{category.pk} reorder failed: {str(e)}", exc_info=True)
        return Response(
            {'message': 'Error updating category.'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    create_audit_log(
        request=request, action='update', model_name='Category', object_id=category.pk,
        object_name=category.name, changes={'order': order}
    )
    return Response({'message': 'Category order updated', 'category': CategorySerializer(category).data})
