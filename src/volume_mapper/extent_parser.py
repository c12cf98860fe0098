"""Parser for the volume extent report printed by ``volume_extents.ps1``.

Grammar (one block per volume, concatenated)::

    Volume: \\\\?\\Volume{<hex token>}
     Mounted at: <mount point>
       Extent [<n>]: Disk: <n> Offset: <n> Length: <n>
       Extent [<n>]: ...

The text is split on the literal volume marker, each chunk's header is
matched, then the remainder is split on the literal extent marker. Chunks
that do not match are noise (banners, blank trailers, warnings) and are
dropped; they never fail the whole report.
"""

from __future__ import annotations

import logging
import re

from .models import ExtentRecord, VolumeRecord

logger = logging.getLogger(__name__)

VOLUME_MARKER = "Volume: "
EXTENT_MARKER = "Extent "

_INT64_MAX = 2 ** 63 - 1

_HEADER_RE = re.compile(
    r"\s*\\\\\?\\Volume\{(?P<volume_id>[0-9A-Fa-f]+(?:-[0-9A-Fa-f]+)*)\}"
    r"\s*Mounted at:[ \t]*(?P<mount_point>[^\r\n]*)"
)
_EXTENT_RE = re.compile(
    r"\[(?P<extent_id>\d+)\]:\s*"
    r"Disk:\s*(?P<disk_id>\d+)\s+"
    r"Offset:\s*(?P<offset>\d+)\s+"
    r"Length:\s*(?P<length>\d+)(?=\s|$)"
)


def _parse_extent(chunk: str) -> ExtentRecord | None:
    m = _EXTENT_RE.match(chunk)
    if not m:
        return None
    values = {name: int(value) for name, value in m.groupdict().items()}
    if any(v > _INT64_MAX for v in values.values()):
        return None
    return ExtentRecord(**values)


def parse_extent_report(text: str) -> list[VolumeRecord]:
    """Turn raw report text into volumes with their extents, in input order."""
    volumes: list[VolumeRecord] = []
    dropped_volumes = 0
    dropped_extents = 0

    for chunk in text.split(VOLUME_MARKER):
        header = _HEADER_RE.match(chunk)
        if not header:
            if chunk.strip():
                dropped_volumes += 1
                logger.debug("Skipping unrecognised volume block: %r", chunk[:80])
            continue

        volume = VolumeRecord(
            volume_id=header.group("volume_id"),
            mount_point=header.group("mount_point").strip(),
        )
        body = chunk[header.end():]
        # Anything before the first marker is the rest of the header line.
        for extent_chunk in body.split(EXTENT_MARKER)[1:]:
            extent = _parse_extent(extent_chunk)
            if extent is None:
                dropped_extents += 1
                logger.debug("Skipping malformed extent on %s: %r",
                             volume.mount_point or volume.volume_id, extent_chunk.strip()[:80])
                continue
            volume.extents.append(extent)
        volumes.append(volume)

    if dropped_volumes or dropped_extents:
        logger.debug("Extent report: dropped %d volume block(s), %d extent line(s)",
                     dropped_volumes, dropped_extents)
    logger.debug("Parsed %d volume(s), %d extent(s)",
                 len(volumes), sum(len(v.extents) for v in volumes))
    return volumes
