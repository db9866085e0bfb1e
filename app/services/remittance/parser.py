"""
Remittance (ERA) text parser.

Turns raw remittance text into a header and an ordered list of per-claim
payment details. Parsing is a single fold over the records: one local
accumulator holds the claim currently being read and is flushed into the
output when the next CLP starts or the input ends. Nothing is kept between
calls and nothing is written anywhere.

Records are separated by newlines (a ``~`` terminator is also accepted) and
fields by ``*``. Consumed tags:

- BPR: check amount (field 2), check date YYYYMMDD (field 16)
- TRN: remittance / trace number (field 2)
- N1:  payer name (field 2) and payer id (field 4) when field 1 is "PR"
- CLP: claim number, status code, charge, paid, patient responsibility (fields 1-5)
- NM1: patient name, last then first (fields 3 and 4) when field 1 is "QC"
- DTM: service date from (qualifier 232) / to (233), date in field 2

Any other well-formed tag is skipped.
"""
import re
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from app.services.remittance.codes import describe_claim_status
from app.utils.decimal_utils import ZERO, parse_financial_amount
from app.utils.errors import RemittanceParseError

RECORD_SEPARATOR = re.compile(r"~|\r?\n")
FIELD_SEPARATOR = "*"
SEGMENT_TAG = re.compile(r"^[A-Z][A-Z0-9]{1,2}$")

PAYER_QUALIFIER = "PR"
PATIENT_QUALIFIER = "QC"
SERVICE_FROM_QUALIFIER = "232"
SERVICE_TO_QUALIFIER = "233"

# Largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class RemittanceHeader:
    number: Optional[str] = None
    payer_id: Optional[str] = None
    payer_name: Optional[str] = None
    check_number: Optional[str] = None
    check_date: Optional[date] = None
    check_amount: Decimal = ZERO


@dataclass(frozen=True)
class ClaimPaymentDetail:
    """One CLP loop: the payer's adjudication of a single claim."""

    claim_number: str
    status_code: str
    status_description: str
    charge_amount: Decimal
    paid_amount: Decimal
    patient_responsibility: Decimal
    patient_name: Optional[str] = None
    service_date_from: Optional[date] = None
    service_date_to: Optional[date] = None


@dataclass(frozen=True)
class ParsedRemittance:
    header: RemittanceHeader
    claims: Tuple[ClaimPaymentDetail, ...] = field(default_factory=tuple)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "header": asdict(self.header),
            "claims": [asdict(claim) for claim in self.claims],
        }


def parse_edi_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an 8-digit YYYYMMDD token.

    Returns None for empty, wrong-length, non-numeric or impossible dates;
    never raises.

    >>> parse_edi_date("20240115")
    datetime.date(2024, 1, 15)
    >>> parse_edi_date("2024011") is None
    True
    """
    if not value:
        return None
    value = value.strip()
    if len(value) != 8 or not value.isdigit():
        return None
    try:
        return date(int(value[0:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def split_records(content: str) -> List[Tuple[int, List[str]]]:
    """Split text into (record number, fields) pairs, skipping blank records."""
    records = []
    for number, raw in enumerate(RECORD_SEPARATOR.split(content), start=1):
        raw = raw.strip()
        if not raw:
            continue
        records.append((number, raw.split(FIELD_SEPARATOR)))
    return records


def _field(fields: List[str], index: int) -> str:
    return fields[index].strip() if index < len(fields) else ""


def _amount(fields: List[str], index: int, record_number: int) -> Decimal:
    raw = _field(fields, index)
    if not raw:
        return ZERO
    amount = parse_financial_amount(raw)
    if amount is None or abs(amount) > MAX_AMOUNT:
        raise RemittanceParseError(
            f"Invalid amount '{raw}' in {fields[0]} field {index}",
            line_number=record_number,
            segment=fields[0],
        )
    return amount


def _start_claim(fields: List[str], record_number: int) -> Dict[str, Any]:
    claim_number = _field(fields, 1)
    if not claim_number:
        raise RemittanceParseError(
            "CLP record is missing the claim number", line_number=record_number, segment="CLP"
        )
    status_code = _field(fields, 2)
    return {
        "claim_number": claim_number,
        "status_code": status_code,
        "status_description": describe_claim_status(status_code),
        "charge_amount": _amount(fields, 3, record_number),
        "paid_amount": _amount(fields, 4, record_number),
        "patient_responsibility": _amount(fields, 5, record_number),
    }


def parse_remittance(content: str) -> ParsedRemittance:
    """
    Parse remittance text.

    Args:
        content: Raw remittance file content

    Returns:
        ParsedRemittance with claims in input order

    Raises:
        RemittanceParseError: A record has no valid segment tag, a CLP has no
            claim number, or a BPR/CLP amount is not numeric. No partial
            result is returned.
    """
    header: Dict[str, Any] = {}
    claims: List[ClaimPaymentDetail] = []
    current: Optional[Dict[str, Any]] = None

    for record_number, fields in split_records(content):
        tag = fields[0].strip()
        if not SEGMENT_TAG.match(tag):
            raise RemittanceParseError(
                f"Malformed record '{tag[:20]}'", line_number=record_number
            )

        if tag == "CLP":
            if current is not None:
                claims.append(ClaimPaymentDetail(**current))
            current = _start_claim(fields, record_number)

        elif tag == "BPR":
            header["check_amount"] = _amount(fields, 2, record_number)
            header["check_date"] = parse_edi_date(_field(fields, 16))

        elif tag == "TRN":
            trace_number = _field(fields, 2) or None
            header["number"] = trace_number
            header["check_number"] = trace_number

        elif tag == "N1" and _field(fields, 1) == PAYER_QUALIFIER:
            header["payer_name"] = _field(fields, 2) or None
            header["payer_id"] = _field(fields, 4) or None

        elif tag == "NM1" and _field(fields, 1) == PATIENT_QUALIFIER and current is not None:
            name = f"{_field(fields, 3)} {_field(fields, 4)}".strip()
            current["patient_name"] = name or None

        elif tag == "DTM" and current is not None:
            qualifier = _field(fields, 1)
            if qualifier == SERVICE_FROM_QUALIFIER:
                current["service_date_from"] = parse_edi_date(_field(fields, 2))
            elif qualifier == SERVICE_TO_QUALIFIER:
                current["service_date_to"] = parse_edi_date(_field(fields, 2))

    if current is not None:
        claims.append(ClaimPaymentDetail(**current))

    return ParsedRemittance(header=RemittanceHeader(**header), claims=tuple(claims))
