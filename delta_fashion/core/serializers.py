from django.core.validators import RegexValidator
from rest_framework import serializers

from .models import User, AdminRequest, AuditLog
from .storage import get_image_url

phone_validator = RegexValidator(
    regex=r'^[0-9+\-\s()]+$',
    message='Invalid phone number.',
)


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=200, required=False, allow_blank=True)
    city = serializers.CharField(max_length=50, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=10, required=False, allow_blank=True)
    country = serializers.CharField(max_length=50, required=False, default='Tunisie')


class UserBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name']


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    avatar_url = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'full_name', 'phone', 'address',
                  'avatar', 'avatar_url', 'role', 'is_active', 'last_login', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_avatar_url(self, obj):
        return get_image_url(obj.avatar)


class RegisterSerializer(serializers.ModelSerializer):
    first_name = serializers.CharField(min_length=2, max_length=50)
    last_name = serializers.CharField(min_length=2, max_length=50)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, style={'input_type': 'password'})
    phone = serializers.CharField(max_length=20, validators=[phone_validator])
    address = AddressSerializer(required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'password', 'phone', 'address']

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('An account with this email already exists.')
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class ProfileUpdateSerializer(serializers.ModelSerializer):
    first_name = serializers.CharField(min_length=2, max_length=50, required=False)
    last_name = serializers.CharField(min_length=2, max_length=50, required=False)
    phone = serializers.CharField(max_length=20, validators=[phone_validator], required=False)
    address = AddressSerializer(required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'phone', 'address']

    def update(self, instance, validated_data):
        address = validated_data.pop('address', None)
        if address is not None:
            instance.address = {**(instance.address or {}), **address}
        return super().update(instance, validated_data)


class UserUpdateSerializer(ProfileUpdateSerializer):
    """Profile fields plus the admin-only role and is_active flags"""
    email = serializers.EmailField(required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'phone', 'address', 'role', 'is_active']

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('An account with this email already exists.')
        return value


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value


class AdminRequestSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)
    reviewed_by = UserBriefSerializer(read_only=True)

    class Meta:
        model = AdminRequest
        fields = ['id', 'user', 'status', 'message', 'reviewed_by', 'reviewed_at',
                  'review_notes', 'created_at', 'updated_at']
        read_only_fields = ['status', 'reviewed_at', 'review_notes', 'created_at', 'updated_at']


class AdminRequestReviewSerializer(serializers.Serializer):
    review_notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'created_at']
