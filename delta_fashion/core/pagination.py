from django.core.paginator import Paginator
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response


def get_pagination_params(request, default_limit=10, max_limit=50):
    """Read and validate ?page= and ?limit= from the query string"""
    errors = {}
    page = request.query_params.get('page', 1)
    limit = request.query_params.get('limit', default_limit)

    try:
        page = int(page)
        if page < 1:
            raise ValueError
    except (TypeError, ValueError):
        errors['page'] = ['Page must be a positive integer.']

    try:
        limit = int(limit)
        if limit < 1 or limit > max_limit:
            raise ValueError
    except (TypeError, ValueError):
        errors['limit'] = [f'Limit must be between 1 and {max_limit}.']

    if errors:
        raise ValidationError(errors)
    return page, limit


def paginated_response(request, queryset, serializer_class, default_limit=10, max_limit=50,
                       context=None, extra=None):
    """Paginate a queryset and serialize the requested page"""
    page, limit = get_pagination_params(request, default_limit, max_limit)
    paginator = Paginator(queryset, limit)

    if page > paginator.num_pages:
        items = []
        has_next = False
        has_previous = page > 1
    else:
        page_obj = paginator.page(page)
        items = page_obj.object_list
        has_next = page_obj.has_next()
        has_previous = page_obj.has_previous()

    serializer = serializer_class(items, many=True, context=context or {'request': request})
    data = {
        'results': serializer.data,
        'count': paginator.count,
        'next': page + 1 if has_next else None,
        'previous': page - 1 if has_previous else None,
        'page': page,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
    if extra:
        data.update(extra)
    return Response(data)
