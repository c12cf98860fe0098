"""Identity key normalization for disk serials and virtual disk UUIDs.

Windows reports the serial of a VMware virtual disk as the disk UUID in
free-form hex (when ``disk.EnableUUID`` is set), while vCenter returns the
same UUID hyphenated in 8-4-4-4-12 groups. Dropping separators and case
makes the two comparable. This is a best-effort match: firmware on other
platforms may report serials that collide or bear no relation to the
virtual disk UUID.
"""

from __future__ import annotations

from typing import Optional

_SEPARATORS = str.maketrans("", "", " -")


def normalize_identity(raw: Optional[str]) -> str:
    """Return ``raw`` without spaces or hyphens, lowercased."""
    if not raw:
        return ""
    return raw.translate(_SEPARATORS).lower()
