from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from stockship.core.permissions import IsAdminOrReadOnly, is_admin_user
from stockship.core.utils import create_activity_log
from .models import Category
from .serializers import CategorySerializer, CategoryTreeSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAdminOrReadOnly])
def category_list_create(request):
    """List categories (public) or create a category (admin)"""
    if request.method == 'GET':
        queryset = Category.objects.select_related('parent').all()
        # Non-admins only ever see active categories
        active = request.query_params.get('active')
        if not is_admin_user(request.user):
            queryset = queryset.filter(is_active=True)
        elif active is not None:
            queryset = queryset.filter(is_active=active.lower() == 'true')
        parent = request.query_params.get('parent')
        if parent == 'root':
            queryset = queryset.filter(parent__isnull=True)
        elif parent:
            if not parent.isdigit():
                return Response({'error': 'parent must be a category id or "root"'},
                                status=status.HTTP_400_BAD_REQUEST)
            queryset = queryset.filter(parent_id=int(parent))
        if request.query_params.get('featured', '').lower() == 'true':
            queryset = queryset.filter(is_featured=True)
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(name_ar__icontains=search))
        return Response(CategorySerializer(queryset, many=True).data)

    serializer = CategorySerializer(data=request.data)
    if serializer.is_valid():
        category = serializer.save()
        create_activity_log(request=request, action='CATEGORY_CREATED', entity_type='CATEGORY',
                            entity_id=category.id, description=f"Category {category.name} created")
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAdminOrReadOnly])
def category_tree(request):
    """Active categories as a nested tree"""
    categories = list(Category.objects.filter(is_active=True))
    children_map = {}
    for category in categories:
        children_map.setdefault(category.parent_id, []).append(category)
    active_ids = {c.id for c in categories}
    # Children of an inactive parent are promoted to the root
    roots = [c for c in categories if c.parent_id is None or c.parent_id not in active_ids]
    serializer = CategoryTreeSerializer(roots, many=True, context={'children_map': children_map})
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminOrReadOnly])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        if not category.is_active and not is_admin_user(request.user):
            return Response({'error': 'Category not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(CategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='CATEGORY_UPDATED', entity_type='CATEGORY',
                                entity_id=category.id, metadata={'fields': sorted(request.data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if category.children.exists():
            return Response({'error': 'Cannot delete a category that has subcategories'},
                            status=status.HTTP_400_BAD_REQUEST)
        if category.offers.exists():
            return Response({'error': 'Cannot delete a category that is used by offers'},
                            status=status.HTTP_400_BAD_REQUEST)
        category_id = category.id
        category.delete()
        create_activity_log(request=request, action='CATEGORY_DELETED', entity_type='CATEGORY', entity_id=category_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
