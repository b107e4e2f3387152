# scheduling/views.py
#
# Purpose:
# - JSON API the booking UI, the payment handler and the queue flow call into.
#   * GET  /api/appointments/availability/?staff=&service=&date=   (public)
#   * POST /api/appointments/                        (public, no login)
#   * GET  /api/appointments/?staff=&date=           (business staff)
#   * GET  /api/appointments/{id}/                   (business staff)
#   * POST /api/appointments/{id}/transition/        (business staff)
#
# Notes:
# - The scheduling services are async; these DRF views are sync and bridge
#   with asgiref's async_to_sync.
# - Back-office routes only see the appointments of the business the logged-in
#   user's Staff profile belongs to; anything else is a 404.
# - Scheduling errors become {"detail": ...} responses. A 409 means the slot
#   was taken: the client should re-fetch availability, not retry.
#

from asgiref.sync import async_to_sync
from django.utils.dateparse import parse_date
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import BasePermission
from rest_framework.response import Response

from .models import Appointment, Staff
from .serializers import (
    AppointmentSerializer,
    AvailabilityQuerySerializer,
    CreateAppointmentSerializer,
    TransitionSerializer,
)
from .services.availability_engine import AvailabilityEngine
from .services.booking_manager import BookingManager
from .services.change_feed import TenantContext
from .services.exceptions import (
    AppointmentNotFoundError,
    IllegalTransitionError,
    PersistenceError,
    SchedulingError,
    ServiceNotFoundError,
    SlotConflictError,
)
from .services.status_lifecycle import StatusLifecycle


# -------------------- Permissions --------------------
def staff_business_id(user):
    """Business id of the active Staff profile linked to 'user', or None."""
    if not (user and user.is_authenticated):
        return None
    return (
        Staff.objects.filter(user=user, active=True)
        .values_list("business_id", flat=True)
        .first()
    )


class IsBusinessStaff(BasePermission):
    """Logged-in users linked to an active Staff profile."""
    def has_permission(self, request, view):
        return staff_business_id(request.user) is not None


def error_response(exc):
    if isinstance(exc, (ServiceNotFoundError, AppointmentNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (SlotConflictError, IllegalTransitionError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


# -------------------- ViewSets --------------------
class AppointmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = AppointmentSerializer

    def get_permissions(self):
        if self.action in ("list", "retrieve", "transition"):
            return [IsBusinessStaff()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Appointment.objects.filter(
            business_id=staff_business_id(self.request.user)
        ).order_by("date", "start_time")
        staff_id = (self.request.query_params.get("staff") or "").strip()
        date_raw = (self.request.query_params.get("date") or "").strip()
        if staff_id.isdigit():
            qs = qs.filter(staff_id=int(staff_id))
        if date_raw:
            try:
                day = parse_date(date_raw)
            except ValueError:
                day = None
            if day is not None:
                qs = qs.filter(date=day)
        return qs

    def create(self, request, *args, **kwargs):
        """
        Book a slot. Requires staff, service, date, start_time, client_name,
        client_phone; optional notes and queue (walk-in reservation).
        """
        serializer = CreateAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        staff = data["staff"]

        manager = BookingManager(TenantContext(staff.business_id))
        try:
            appointment = async_to_sync(manager.create_appointment)(
                staff_id=staff.pk,
                service_id=data["service"].pk,
                date=data["date"],
                start_time=data["start_time"],
                client_name=data["client_name"],
                client_phone=data["client_phone"],
                notes=data.get("notes", ""),
                initial_status=serializer.initial_status,
            )
        except SchedulingError as e:
            return error_response(e)

        out = AppointmentSerializer(appointment)
        return Response(out.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        # 404 for appointments of other businesses.
        current = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lifecycle = StatusLifecycle()
        try:
            appointment = async_to_sync(lifecycle.transition_status)(
                current.pk,
                serializer.validated_data["status"],
                serializer.validated_data["cause"],
            )
        except SchedulingError as e:
            return error_response(e)

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="availability")
    def availability(self, request):
        """
        GET /api/appointments/availability/?staff=ID&service=ID&date=YYYY-MM-DD
        Returns {"slots": [{"start_time": "HH:MM", "end_time": "HH:MM"}, ...]}.
        """
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        engine = AvailabilityEngine()
        try:
            slots = async_to_sync(engine.get_available_slots)(
                params["staff"].pk, params["date"], params["service"].pk
            )
        except SchedulingError as e:
            return error_response(e)

        return Response({"slots": [slot.as_dict() for slot in slots]})
