# staff/models.py
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Weekday(models.IntegerChoices):
    SUNDAY = 0, "Sunday"
    MONDAY = 1, "Monday"
    TUESDAY = 2, "Tuesday"
    WEDNESDAY = 3, "Wednesday"
    THURSDAY = 4, "Thursday"
    FRIDAY = 5, "Friday"
    SATURDAY = 6, "Saturday"


class WorkingHours(models.Model):
    """
    Weekly working window for a staff member.
    Points to scheduling.Staff; weekday 0 is Sunday.
    """
    staff = models.ForeignKey(
        "scheduling.Staff",
        on_delete=models.CASCADE,
        related_name="working_hours",
    )
    weekday = models.PositiveSmallIntegerField(choices=Weekday.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["staff_id", "weekday"]
        verbose_name_plural = "working hours"
        constraints = [
            models.UniqueConstraint(
                fields=["staff", "weekday"],
                condition=Q(is_active=True),
                name="uniq_active_working_hours_per_weekday",
            ),
        ]

    def __str__(self):
        return f"{self.staff.name}: {self.get_weekday_display()} {self.start_time}-{self.end_time}"

    def clean(self):
        if self.is_active and self.start_time >= self.end_time:
            raise ValidationError("start_time must be before end_time.")


class ScheduleException(models.Model):
    """
    One-off override of a staff member's window for a single date.
    Both times empty means the staff member is off that day.
    """
    staff = models.ForeignKey(
        "scheduling.Staff",
        on_delete=models.CASCADE,
        related_name="schedule_exceptions",
    )
    date = models.DateField()
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["staff_id", "date"]
        constraints = [
            models.UniqueConstraint(fields=["staff", "date"], name="uniq_schedule_exception_per_date"),
        ]

    def __str__(self):
        if self.is_day_off:
            return f"{self.staff.name}: off on {self.date}"
        return f"{self.staff.name}: {self.date} {self.start_time}-{self.end_time}"

    @property
    def is_day_off(self):
        return self.start_time is None or self.end_time is None

    def clean(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValidationError("Set both start_time and end_time, or neither for a day off.")
        if not self.is_day_off and self.start_time >= self.end_time:
            raise ValidationError("start_time must be before end_time.")
