"""
Parse FCC ULS pipe-delimited flat files (AM.dat, EN.dat) into typed records
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterator, List, Optional, Tuple, Type, Any
from pydantic import BaseModel, ValidationError
from models.base import Base, ImportPhase
from models.fcc_records import AmateurRecord, EntityRecord
from schemas.fcc import LicenseRecord, EntityRecordData
import logging

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "|"
CALL_SIGN_INDEX = 4

# AM.dat columns 4..17, in file order
AMATEUR_COLUMNS = [
    "call_sign",
    "operator_class",
    "group_code",
    "region_code",
    "trustee_call_sign",
    "trustee_indicator",
    "physician_certification",
    "ve_signature",
    "systematic_call_sign_change",
    "vanity_call_sign_change",
    "vanity_relationship",
    "previous_call_sign",
    "previous_operator_class",
    "trustee_name",
]

# EN.dat column index -> field
ENTITY_COLUMNS = {
    1: "entity_type",
    2: "licensee_id",
    3: "frn",
    4: "call_sign",
    5: "applicant_type_code",
    6: "applicant_type_other",
    7: "entity_name",
    8: "first_name",
    9: "mi",
    10: "last_name",
    11: "suffix",
    12: "phone",
    13: "fax",
    14: "email",
    15: "street_address",
    16: "city",
    17: "state",
    18: "zip_code",
    19: "po_box",
    20: "attention_line",
    21: "sgin",
    23: "status_code",
}
STATUS_DATE_INDEX = 22


@dataclass(frozen=True)
class RecordSpec:
    """
    Everything the generic pipeline needs to know about one record type.

    One processor, writer and deduplicator serve both files; only the
    RecordSpec differs.
    """
    tag: str
    phase: ImportPhase
    min_fields: int
    build: Callable[[List[Optional[str]]], BaseModel]
    key_fields: Tuple[str, ...]
    table: Type[Base]
    file_name: str

    def key(self, record: BaseModel) -> Tuple[Any, ...]:
        return tuple(getattr(record, field) for field in self.key_fields)

    @property
    def table_name(self) -> str:
        return self.table.__tablename__


def _clean(value: Optional[str]) -> Optional[str]:
    """Trim a column; empty becomes None"""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _column(fields: List[str], index: int) -> Optional[str]:
    return _clean(fields[index]) if index < len(fields) else None


def parse_status_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a ULS ``MM/DD/YYYY`` date.

    Empty, ``N/A``, missing or unparseable values give None; never raises.
    """
    if text is None:
        return None
    text = text.strip()
    if not text or text.upper() == "N/A":
        return None
    try:
        return datetime.strptime(text, "%m/%d/%Y").date()
    except ValueError:
        logger.debug(f"Unparseable status date: {text!r}")
        return None


def _build_amateur(fields: List[str]) -> LicenseRecord:
    values = {
        name: _column(fields, CALL_SIGN_INDEX + offset)
        for offset, name in enumerate(AMATEUR_COLUMNS)
    }
    values["call_sign"] = values["call_sign"].upper()
    return LicenseRecord(**values)


def _build_entity(fields: List[str]) -> EntityRecordData:
    values = {name: _column(fields, index) for index, name in ENTITY_COLUMNS.items()}
    values["call_sign"] = values["call_sign"].upper()
    values["status_date"] = parse_status_date(_column(fields, STATUS_DATE_INDEX))
    return EntityRecordData(**values)


AMATEUR_SPEC = RecordSpec(
    tag="AM",
    phase=ImportPhase.AMATEUR,
    min_fields=18,
    build=_build_amateur,
    key_fields=("call_sign",),
    table=AmateurRecord,
    file_name="AM.dat",
)

ENTITY_SPEC = RecordSpec(
    tag="EN",
    phase=ImportPhase.ENTITY,
    min_fields=23,
    build=_build_entity,
    key_fields=("call_sign", "licensee_id", "entity_type"),
    table=EntityRecord,
    file_name="EN.dat",
)

_SPECS_BY_PHASE = {
    ImportPhase.AMATEUR: AMATEUR_SPEC,
    ImportPhase.ENTITY: ENTITY_SPEC,
}


def spec_for_phase(phase) -> RecordSpec:
    return _SPECS_BY_PHASE[ImportPhase(phase)]


def parse_line(line: str, spec: RecordSpec) -> Optional[BaseModel]:
    """
    Parse one source line for the given record type.

    Returns None (and never raises) when the line belongs to another
    record type, has too few columns, or has no call sign.
    """
    fields = line.rstrip("\r\n").split(FIELD_DELIMITER)

    if fields[0].strip() != spec.tag:
        return None
    if len(fields) < spec.min_fields:
        return None
    if not _clean(fields[CALL_SIGN_INDEX]):
        return None

    try:
        return spec.build(fields)
    except ValidationError as e:
        logger.debug(f"Skipping malformed {spec.tag} line: {e.errors()[0].get('msg')}")
        return None


def iter_source_lines(path, encoding: str = "latin-1") -> Iterator[Tuple[int, str, int]]:
    """
    Lazily yield ``(ordinal, text, bytes_consumed)`` for every physical line.

    Ordinals are 1-based and count every line regardless of its tag, so a
    checkpoint's skipLines can be reapplied verbatim on resume.
    bytes_consumed lets callers report progress as a fraction of the file.
    """
    consumed = 0
    with open(path, "rb") as f:
        for ordinal, raw in enumerate(f, start=1):
            consumed += len(raw)
            yield ordinal, raw.decode(encoding, errors="replace"), consumed
