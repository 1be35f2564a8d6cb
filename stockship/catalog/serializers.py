from rest_framework import serializers
from .models import Category


class CategorySerializer(serializers.ModelSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True)
    slug = serializers.SlugField(max_length=220, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'name_ar', 'slug', 'parent', 'parent_name', 'description', 'image',
                  'is_active', 'is_featured', 'display_order', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_slug(self, value):
        queryset = Category.objects.filter(slug=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Category with this slug already exists.')
        return value

    def validate_parent(self, value):
        if value is None or self.instance is None:
            return value
        node = value
        while node is not None:
            if node.pk == self.instance.pk:
                raise serializers.ValidationError('A category cannot be its own ancestor.')
            node = node.parent
        return value


class CategoryTreeSerializer(serializers.ModelSerializer):
    children = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'name_ar', 'slug', 'image', 'is_featured', 'display_order', 'children']

    def get_children(self, obj):
        children_map = self.context.get('children_map', {})
        return CategoryTreeSerializer(children_map.get(obj.id, []), many=True, context=self.context).data
