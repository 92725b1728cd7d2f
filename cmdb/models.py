"""
cmdb/models.py -- Domain dataclasses for persisted FleetAdvisor state.

Pure data containers with zero logic. The store keeps only what cannot be
recomputed: the raw uploaded exports and the manually toggled retired flag.
Classified devices are derived on every load (see cmdb/merge.py).
"""

from dataclasses import dataclass

# Upload slots, one current export per source type.
CSV_SOURCES = ("jamf", "intune", "users", "coreview", "qualys")


@dataclass
class CsvUpload:
    """Metadata for the current export stored for one source type.

    rows counts data rows (header excluded) at upload time.
    """

    source: str  # one of CSV_SOURCES
    filename: str
    rows: int
    size_bytes: int
    uploaded_at: str  # ISO 8601
