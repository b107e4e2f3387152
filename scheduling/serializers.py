import re

from rest_framework import serializers

from .models import Appointment, AppointmentStatus, Service, Staff
from .services.exceptions import MalformedTimeError
from .services.status_lifecycle import TransitionCause
from .services.time_grid import format_minutes, parse_time_to_minutes

PHONE_RE = re.compile(r"^\d{7,15}$")


class AvailabilityQuerySerializer(serializers.Serializer):
    staff = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.filter(active=True))
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.filter(active=True))
    date = serializers.DateField()

    def validate(self, attrs):
        if attrs["staff"].business_id != attrs["service"].business_id:
            raise serializers.ValidationError("This service is not offered by this staff member's business.")
        return attrs


class AppointmentSerializer(serializers.ModelSerializer):
    start_time = serializers.SerializerMethodField()
    end_time = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            "id",
            "business",
            "staff",
            "service",
            "date",
            "start_time",
            "end_time",
            "status",
            "payment_status",
            "is_subscription_appointment",
            "subscription_id",
            "client_name",
            "client_phone",
            "notes",
        ]
        read_only_fields = fields

    def get_start_time(self, obj):
        return format_minutes(parse_time_to_minutes(obj.start_time))

    def get_end_time(self, obj):
        return format_minutes(parse_time_to_minutes(obj.end_time))


class CreateAppointmentSerializer(serializers.Serializer):
    staff = serializers.PrimaryKeyRelatedField(queryset=Staff.objects.filter(active=True))
    service = serializers.PrimaryKeyRelatedField(queryset=Service.objects.filter(active=True))
    date = serializers.DateField()
    start_time = serializers.CharField(max_length=20)
    client_name = serializers.CharField(max_length=200)
    client_phone = serializers.CharField(max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    queue = serializers.BooleanField(required=False, default=False)

    def validate_start_time(self, value):
        try:
            parse_time_to_minutes(value)
        except MalformedTimeError as e:
            raise serializers.ValidationError(str(e))
        return value.strip()

    def validate_client_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Client name is required.")
        return value

    def validate_client_phone(self, value):
        # Same rule as the rest of the booking flow: digits only, 7–15.
        value = value.strip()
        if not PHONE_RE.match(value):
            raise serializers.ValidationError("Phone must be digits only, 7 to 15 digits.")
        return value

    def validate(self, attrs):
        if attrs["staff"].business_id != attrs["service"].business_id:
            raise serializers.ValidationError("This service is not offered by this staff member's business.")
        return attrs

    @property
    def initial_status(self):
        if self.validated_data.get("queue"):
            return AppointmentStatus.QUEUE_RESERVED
        return AppointmentStatus.PENDING


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.choices)
    cause = serializers.ChoiceField(choices=TransitionCause.choices, default=TransitionCause.STAFF_ACTION)
