from django.core.management.base import BaseCommand

from sterilization.services.expiry import expiring_boxes, scan_sterility_expiry


class Command(BaseCommand):
    help = "Raise alerts for sterile boxes whose sterility window has passed"

    def add_arguments(self, parser):
        parser.add_argument(
            "--report",
            action="store_true",
            help="Also print every box in the expired, critical or warning band.",
        )

    def handle(self, *args, **options):
        created = scan_sterility_expiry()
        self.stdout.write(self.style.SUCCESS(f"{created} new sterility alert(s)"))

        if options["report"]:
            for row in expiring_boxes():
                self.stdout.write(
                    f"{row.level:<8} {row.box.box_code:<20} "
                    f"expires {row.expires_at:%Y-%m-%d %H:%M} ({row.days_remaining}d)"
                )
