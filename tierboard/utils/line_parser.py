"""
Split raw admin text into bulk entries.

Blank lines and lines starting with # are skipped but still counted, so
line numbers in error messages match what the admin pasted.
"""

from typing import List, Tuple

from tierboard.services.bulk_submission_service import RegistrationEntry, SubmissionEntry

SUBMISSION_FORMAT = "name,gamemode,tier[,region]"
REGISTRATION_FORMAT = "name[,secondary]"


def _lines(text: str):
    for number, raw in enumerate((text or "").splitlines(), start=1):
        line = raw.strip()
        if line and not line.startswith("#"):
            yield number, [part.strip() for part in line.split(",")]


def parse_submission_lines(text: str) -> Tuple[List[SubmissionEntry], List[str]]:
    """
    Returns:
        (entries, errors) where errors use the "Line N (name): reason" form
    """
    entries: List[SubmissionEntry] = []
    errors: List[str] = []
    for number, parts in _lines(text):
        if len(parts) not in (3, 4):
            errors.append(f"Line {number} ({parts[0]}): expected {SUBMISSION_FORMAT}")
            continue
        region = parts[3] if len(parts) == 4 and parts[3] else None
        entries.append(SubmissionEntry(
            ign=parts[0], gamemode=parts[1], tier=parts[2], region=region, line=number
        ))
    return entries, errors


def parse_registration_lines(text: str) -> Tuple[List[RegistrationEntry], List[str]]:
    entries: List[RegistrationEntry] = []
    errors: List[str] = []
    for number, parts in _lines(text):
        if len(parts) > 2:
            errors.append(f"Line {number} ({parts[0]}): expected {REGISTRATION_FORMAT}")
            continue
        secondary = parts[1] if len(parts) == 2 and parts[1] else None
        entries.append(RegistrationEntry(ign=parts[0], java_username=secondary, line=number))
    return entries, errors
