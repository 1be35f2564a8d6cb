from rest_framework import serializers

from stockship.parties.serializers import EmployeeBriefSerializer, TraderBriefSerializer
from .models import SupportTicket, TicketMessage


class TicketMessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True)

    class Meta:
        model = TicketMessage
        fields = ['id', 'ticket', 'sender', 'sender_name', 'sender_type', 'message', 'attachments', 'created_at']
        read_only_fields = fields


class TicketOfferSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    status = serializers.CharField()


class SupportTicketSerializer(serializers.ModelSerializer):
    offer = TicketOfferSerializer(read_only=True)
    trader = TraderBriefSerializer(read_only=True)
    employee = EmployeeBriefSerializer(read_only=True)
    message_count = serializers.SerializerMethodField()

    class Meta:
        model = SupportTicket
        fields = ['id', 'offer', 'trader', 'employee', 'subject', 'status', 'priority', 'message_count',
                  'resolved_at', 'closed_at', 'created_at', 'updated_at']

    def get_message_count(self, obj):
        count = getattr(obj, 'message_count', None)
        return count if count is not None else obj.messages.count()


class SupportTicketDetailSerializer(SupportTicketSerializer):
    messages = TicketMessageSerializer(many=True, read_only=True)

    class Meta(SupportTicketSerializer.Meta):
        fields = SupportTicketSerializer.Meta.fields + ['messages']


class TicketCreateSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=255)
    message = serializers.CharField()
    priority = serializers.ChoiceField(choices=SupportTicket.PRIORITY_CHOICES, default=SupportTicket.MEDIUM)


class TicketMessageCreateSerializer(serializers.Serializer):
    message = serializers.CharField()
    attachments = serializers.ListField(child=serializers.CharField(max_length=500), required=False)


class TicketStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=SupportTicket.STATUS_CHOICES)


class TicketAssignSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField(required=False, allow_null=True)
