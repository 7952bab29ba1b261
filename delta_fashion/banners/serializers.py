from rest_framework import serializers

from .models import Banner


class BannerSerializer(serializers.ModelSerializer):
    image_url = serializers.CharField(read_only=True)
    is_live = serializers.BooleanField(read_only=True)

    class Meta:
        model = Banner
        fields = ['id', 'title', 'subtitle', 'description', 'image', 'image_url', 'button_text',
                  'button_link', 'order', 'is_active', 'is_live', 'start_date', 'end_date',
                  'background_color', 'text_color', 'position', 'created_at', 'updated_at']


class BannerWriteSerializer(serializers.ModelSerializer):
    title = serializers.CharField(min_length=2, max_length=100)

    class Meta:
        model = Banner
        fields = ['title', 'subtitle', 'description', 'button_text', 'button_link', 'order',
                  'is_active', 'start_date', 'end_date', 'background_color', 'text_color', 'position']

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date <= start_date:
            raise serializers.ValidationError({'end_date': ['End date must be after the start date.']})
        return attrs
