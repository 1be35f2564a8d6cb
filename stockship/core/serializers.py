from decimal import Decimal

from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import User, ActivityLog, Notification, PlatformSettings


class UserSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'full_name', 'role', 'phone',
                  'country_code', 'country', 'city', 'is_active', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['last_login', 'created_at', 'updated_at']


class UserBriefSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'full_name', 'role']


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name',
                  'role', 'phone', 'country_code', 'country', 'city']

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class ClientRegisterSerializer(UserCreateSerializer):
    """Self registration. Always creates a CLIENT account."""

    class Meta(UserCreateSerializer.Meta):
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name',
                  'phone', 'country_code', 'country', 'city']

    def create(self, validated_data):
        validated_data['role'] = User.CLIENT
        return super().create(validated_data)


class ActivityLogSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)

    class Meta:
        model = ActivityLog
        fields = ['id', 'user', 'user_type', 'action', 'entity_type', 'entity_id', 'description',
                  'metadata', 'ip_address', 'user_agent', 'created_at']


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'related_entity_type', 'related_entity_id',
                  'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class PlatformSettingsSerializer(serializers.ModelSerializer):
    platform_commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2,
                                                        min_value=Decimal('0'), max_value=Decimal('100'))
    cbm_rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'),
                                        required=False, allow_null=True)
    updated_by = UserBriefSerializer(read_only=True)

    class Meta:
        model = PlatformSettings
        fields = ['platform_name', 'platform_commission_rate', 'commission_method', 'cbm_rate', 'currency',
                  'default_language', 'timezone', 'support_email', 'support_phone', 'maintenance_mode',
                  'allow_client_registration', 'updated_by', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_currency(self, value):
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError('Currency must be a 3-letter code.')
        return value.upper()

    def validate(self, attrs):
        method = attrs.get('commission_method', getattr(self.instance, 'commission_method', PlatformSettings.PERCENTAGE))
        cbm_rate = attrs.get('cbm_rate', getattr(self.instance, 'cbm_rate', None))
        if method in (PlatformSettings.CBM, PlatformSettings.BOTH) and (cbm_rate is None or cbm_rate <= 0):
            raise serializers.ValidationError({'cbm_rate': 'CBM rate must be greater than 0 when commission method is CBM or BOTH.'})
        return attrs
