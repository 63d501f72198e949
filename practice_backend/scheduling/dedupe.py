from practice_backend.scheduling.types import Appointment


def dedupe(remote: list[Appointment], cached: list[Appointment]) -> list[Appointment]:
    """Merge remote and cached appointments, keeping the first entry per id.

    Remote entries come first in their original order. Cached entries only
    survive when the remote has no appointment with the same identifier.
    """
    seen: set[str] = set()
    merged: list[Appointment] = []

    for appointment in [*remote, *cached]:
        if appointment.id in seen:
            continue
        seen.add(appointment.id)
        merged.append(appointment)

    return merged
