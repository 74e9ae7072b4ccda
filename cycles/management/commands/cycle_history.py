import json

from django.core.management.base import BaseCommand, CommandError

from cycles.services import cycles as svc
from cycles.workflow.errors import WorkflowError


class Command(BaseCommand):
    help = "Print the audit trail of a treatment cycle, oldest entry first."

    def add_arguments(self, parser):
        parser.add_argument("cycle_id")
        parser.add_argument("--json", action="store_true", help="Emit one JSON object per line.")

    def handle(self, *args, **opts):
        try:
            entries = svc.audit_history(opts["cycle_id"])
        except WorkflowError as e:
            raise CommandError(e.message) from e
        for entry in entries:
            if opts["json"]:
                self.stdout.write(json.dumps(entry, ensure_ascii=False, sort_keys=True))
                continue
            self.stdout.write(
                f"{entry['timestamp']}  v{entry['beforeVersion']}->v{entry['afterVersion']}  "
                f"{entry['action']:<13} {entry['stageId'] or '-':<18} actor={entry['actorId']}"
            )
        if not opts["json"]:
            self.stdout.write(self.style.SUCCESS(f"{len(entries)} entries"))
