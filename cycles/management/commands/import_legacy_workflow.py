from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from cycles.services import cycles as svc
from cycles.workflow.errors import WorkflowError
from cycles.workflow.legacy import LegacyFormatError, legacy_to_cycle, parse_legacy_notes


class Command(BaseCommand):
    help = "Import a cycle from legacy notes holding an 'IVF/IUI Workflow Data:' JSON blob."

    def add_arguments(self, parser):
        source = parser.add_mutually_exclusive_group(required=True)
        source.add_argument("--file", help="Path to a text file with the notes.")
        source.add_argument("--notes", help="The notes text itself.")
        parser.add_argument("--patient", required=True, help="Patient id, unless the blob carries one.")
        parser.add_argument("--doctor", required=True)
        parser.add_argument("--actor", required=True, help="Id recorded as the actor of the import.")
        parser.add_argument("--treatment-type", choices=["IVF", "IUI"],
                            help="Used when the notes have no workflow header.")
        parser.add_argument("--cycle-id", help="Keep this id instead of generating one.")

    def handle(self, *args, **opts):
        if opts["file"]:
            try:
                notes = Path(opts["file"]).read_text(encoding="utf-8")
            except OSError as e:
                raise CommandError(f"cannot read {opts['file']}: {e}") from e
        else:
            notes = opts["notes"]
        try:
            treatment_type, blob = parse_legacy_notes(notes, opts["treatment_type"])
        except LegacyFormatError as e:
            raise CommandError(str(e)) from e

        result = legacy_to_cycle(
            treatment_type,
            blob,
            patient_id=opts["patient"],
            doctor_id=opts["doctor"],
            imported_at=timezone.now(),
            cycle_id=opts["cycle_id"],
        )
        try:
            cycle = svc.workflow().import_cycle(result.cycle, actor_id=opts["actor"], source="legacy-notes")
        except WorkflowError as e:
            raise CommandError(e.message) from e

        for warning in result.warnings:
            self.stdout.write(self.style.WARNING(f"warning: {warning}"))
        self.stdout.write(self.style.SUCCESS(
            f"imported {cycle.treatment_type} cycle {cycle.id} at {cycle.current_stage_id} ({cycle.status})"
        ))
