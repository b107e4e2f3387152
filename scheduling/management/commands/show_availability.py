"""
show_availability.py
--------------------
Django management command to print the free slots for a staff member.

Usage:
    python manage.py show_availability --staff 3 --service 7 --date 2026-10-20

Behavior:
- Runs the same availability computation the API uses.
- Prints one "HH:MM-HH:MM" line per free slot, then a summary line.
"""

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from scheduling.services.availability_engine import AvailabilityEngine
from scheduling.services.exceptions import SchedulingError
from scheduling.services.time_grid import format_minutes


class Command(BaseCommand):
    help = "Print available appointment slots for a staff member, service and date."

    def add_arguments(self, parser):
        parser.add_argument("--staff", type=int, required=True, help="Staff id.")
        parser.add_argument("--service", type=int, required=True, help="Service id.")
        parser.add_argument("--date", required=True, help="Date as YYYY-MM-DD.")

    def handle(self, *args, **options):
        try:
            day = parse_date(options["date"])
        except ValueError:
            day = None
        if day is None:
            raise CommandError("Invalid date format. Use YYYY-MM-DD.")

        engine = AvailabilityEngine()
        try:
            slots = async_to_sync(engine.get_available_slots)(options["staff"], day, options["service"])
        except SchedulingError as e:
            raise CommandError(str(e)) from e

        for slot in slots:
            self.stdout.write(f"{format_minutes(slot.start)}-{format_minutes(slot.end)}")

        self.stdout.write(self.style.SUCCESS(f"{len(slots)} slot(s) available on {day}."))
