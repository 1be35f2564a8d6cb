from decimal import Decimal

from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from rest_framework import serializers

from stockship.core.barcodes import generate_numeric_barcode
from stockship.core.models import User
from stockship.core.utils import build_unique_username, generate_sequential_code
from .models import Employee, Trader


class EmployeeBriefSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)

    class Meta:
        model = Employee
        fields = ['id', 'employee_code', 'name']


class EmployeeSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    phone = serializers.CharField(source='user.phone', read_only=True)
    is_active = serializers.BooleanField(source='user.is_active', read_only=True)
    trader_count = serializers.SerializerMethodField()
    deal_count = serializers.SerializerMethodField()

    class Meta:
        model = Employee
        fields = ['id', 'employee_code', 'name', 'username', 'email', 'phone', 'commission_rate', 'is_active',
                  'trader_count', 'deal_count', 'created_at', 'updated_at']

    def get_trader_count(self, obj):
        return getattr(obj, 'trader_count', None)

    def get_deal_count(self, obj):
        return getattr(obj, 'deal_count', None)


class EmployeeCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    username = serializers.CharField(max_length=150, required=False)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False,
                                               min_value=Decimal('0'), max_value=Decimal('100'))

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Employee with this email already exists')
        return value

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError('A user with that username already exists.')
        return value

    @transaction.atomic
    def create(self, validated_data):
        user = User(
            username=validated_data.get('username') or build_unique_username(validated_data['email']),
            email=validated_data['email'],
            first_name=validated_data['first_name'],
            last_name=validated_data.get('last_name', ''),
            phone=validated_data.get('phone') or None,
            role=User.EMPLOYEE,
        )
        user.set_password(validated_data['password'])
        user.save()
        employee = Employee(
            user=user,
            employee_code=generate_sequential_code(Employee, 'employee_code', 'EMP'),
            created_by=self.context.get('created_by'),
        )
        if validated_data.get('commission_rate') is not None:
            employee.commission_rate = validated_data['commission_rate']
        employee.save()
        return employee


class EmployeeUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False,
                                               min_value=Decimal('0'), max_value=Decimal('100'))
    is_active = serializers.BooleanField(required=False)

    def update(self, instance, validated_data):
        user = instance.user
        for field in ('first_name', 'last_name', 'phone', 'is_active'):
            if field in validated_data:
                setattr(user, field, validated_data[field])
        user.save()
        if 'commission_rate' in validated_data:
            instance.commission_rate = validated_data['commission_rate']
            instance.save(update_fields=['commission_rate', 'updated_at'])
        return instance


class TraderSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    phone = serializers.CharField(source='user.phone', read_only=True)
    country_code = serializers.CharField(source='user.country_code', read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    employee = EmployeeBriefSerializer(read_only=True)
    offer_count = serializers.SerializerMethodField()
    deal_count = serializers.SerializerMethodField()

    class Meta:
        model = Trader
        fields = ['id', 'trader_code', 'barcode', 'name', 'username', 'email', 'phone', 'country_code',
                  'company_name', 'company_address', 'country', 'city', 'is_active', 'is_verified',
                  'verified_at', 'employee', 'linked_client', 'bank_name', 'bank_account_name',
                  'bank_account_number', 'bank_address', 'bank_code', 'swift_code', 'offer_count',
                  'deal_count', 'created_at', 'updated_at']

    def get_offer_count(self, obj):
        return getattr(obj, 'offer_count', None)

    def get_deal_count(self, obj):
        return getattr(obj, 'deal_count', None)


class TraderBriefSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)

    class Meta:
        model = Trader
        fields = ['id', 'trader_code', 'name', 'company_name', 'country', 'city', 'is_verified']


class TraderPublicSerializer(serializers.ModelSerializer):
    name = serializers.CharField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    active_offer_count = serializers.IntegerField(read_only=True)
    completed_deal_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Trader
        fields = ['id', 'name', 'company_name', 'trader_code', 'country', 'city', 'is_active', 'is_verified',
                  'verified_at', 'created_at', 'active_offer_count', 'completed_deal_count']


class TraderCreateSerializer(serializers.Serializer):
    """Trader account created by an employee"""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    name = serializers.CharField(max_length=150)
    company_name = serializers.CharField(max_length=255)
    username = serializers.CharField(max_length=150, required=False)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country_code = serializers.CharField(max_length=8, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    company_address = serializers.CharField(required=False, allow_blank=True)

    def validate_email(self, value):
        taken = User.objects.filter(email__iexact=value).exclude(role=User.CLIENT)
        if taken.exists():
            raise serializers.ValidationError('Trader with this email already exists')
        return value

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError('A user with that username already exists.')
        return value

    @transaction.atomic
    def create(self, validated_data):
        employee = self.context['employee']
        client = User.objects.filter(email__iexact=validated_data['email'], role=User.CLIENT).first()

        def pick(field):
            return validated_data.get(field) or (getattr(client, field, None) if client else None)

        user = User(
            username=validated_data.get('username') or build_unique_username(validated_data['email']),
            email=validated_data['email'],
            first_name=validated_data['name'],
            phone=pick('phone'),
            country_code=pick('country_code'),
            country=pick('country'),
            city=pick('city'),
            role=User.TRADER,
        )
        user.set_password(validated_data['password'])
        user.save()
        return Trader.objects.create(
            user=user,
            employee=employee,
            linked_client=client,
            company_name=validated_data['company_name'],
            company_address=validated_data.get('company_address', ''),
            country=user.country or '',
            city=user.city or '',
            trader_code=generate_sequential_code(Trader, 'trader_code', 'TRD'),
            barcode=generate_numeric_barcode(),
            is_verified=False,
        )


class TraderRegisterSerializer(serializers.Serializer):
    """A client applying for a trader profile. The profile starts unverified and unassigned."""
    bank_account_name = serializers.CharField(max_length=255)
    bank_account_number = serializers.CharField(max_length=100)
    bank_name = serializers.CharField(max_length=255)
    bank_address = serializers.CharField(required=False, allow_blank=True)
    bank_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    swift_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    company_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    company_address = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)

    @transaction.atomic
    def create(self, validated_data):
        client = self.context['client']
        # The trader account reuses the client's password hash so the same credentials work
        user = User(
            username=build_unique_username(f"{client.username}-trader"),
            email=client.email,
            first_name=validated_data.get('name') or client.first_name,
            last_name='' if validated_data.get('name') else client.last_name,
            phone=validated_data.get('phone') or client.phone,
            country_code=client.country_code,
            country=validated_data.get('country') or client.country,
            city=validated_data.get('city') or client.city,
            role=User.TRADER,
            password=client.password,
        )
        user.save()
        return Trader.objects.create(
            user=user,
            linked_client=client,
            company_name=validated_data.get('company_name') or validated_data['bank_account_name'],
            company_address=validated_data.get('company_address', ''),
            country=user.country or '',
            city=user.city or '',
            bank_name=validated_data['bank_name'],
            bank_account_name=validated_data['bank_account_name'],
            bank_account_number=validated_data['bank_account_number'],
            bank_address=validated_data.get('bank_address', ''),
            bank_code=validated_data.get('bank_code', ''),
            swift_code=validated_data.get('swift_code', ''),
            trader_code=generate_sequential_code(Trader, 'trader_code', 'TRD'),
            barcode=generate_numeric_barcode(),
            is_verified=False,
        )
