"""GH-QR merchant payload encoder (EMV-style Tag-Length-Value + CRC16-CCITT)."""
from __future__ import annotations

import binascii
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Union

from app.core.config import settings
from app.core.errors import InvalidArgument

PAYLOAD_FORMAT_INDICATOR = "00"
POINT_OF_INITIATION = "01"
MERCHANT_CATEGORY_CODE = "52"
TRANSACTION_CURRENCY = "53"
TRANSACTION_AMOUNT = "54"
COUNTRY_CODE = "58"
MERCHANT_NAME = "59"
ADDITIONAL_DATA = "62"
REFERENCE_LABEL = "01"
CRC = "63"

DYNAMIC_QR = "12"
MCC_SCHOOLS = "8249"
CURRENCY_GHS = "936"

MAX_VALUE_LENGTH = 99

Amount = Union[Decimal, str, int, float]


@dataclass(frozen=True)
class TLVItem:
    tag: str
    value: str

    def encode(self) -> str:
        length = len(self.value.encode("utf-8"))
        if length > MAX_VALUE_LENGTH:
            raise InvalidArgument(f"Value for tag {self.tag} is {length} bytes; the limit is {MAX_VALUE_LENGTH}")
        return f"{self.tag}{length:02d}{self.value}"


def build_tlv(items: Iterable[TLVItem]) -> str:
    return "".join(item.encode() for item in items)


def parse_tlv(payload: str) -> List[TLVItem]:
    """Split a TLV string back into its items. Lengths count UTF-8 bytes."""
    raw = payload.encode("utf-8")
    items = []
    pos = 0
    while pos < len(raw):
        if pos + 4 > len(raw):
            raise InvalidArgument(f"Truncated TLV header at offset {pos}")
        try:
            tag = raw[pos:pos + 2].decode("ascii")
        except UnicodeDecodeError:
            raise InvalidArgument(f"Bad tag at offset {pos}")
        length_field = raw[pos + 2:pos + 4]
        if not length_field.isdigit():
            raise InvalidArgument(f"Bad length field for tag {tag}")
        length = int(length_field)
        end = pos + 4 + length
        if end > len(raw):
            raise InvalidArgument(f"Value for tag {tag} runs past the end of the payload")
        try:
            value = raw[pos + 4:end].decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidArgument(f"Value for tag {tag} splits a multi-byte character")
        items.append(TLVItem(tag=tag, value=value))
        pos = end
    return items


def crc16_ccitt(data: str) -> str:
    """CRC16-CCITT (poly 0x1021, init 0xFFFF) as 4 uppercase hex digits."""
    return f"{binascii.crc_hqx(data.encode('utf-8'), 0xFFFF):04X}"


def format_amount(amount: Amount) -> str:
    """
    String form of the amount, as the caller formatted it.

    Strings keep their formatting (``"50.00"`` stays ``"50.00"``) with only
    surrounding whitespace removed. Numbers go through ``str``. Empty, zero,
    negative or non-numeric amounts are rejected.
    """
    if isinstance(amount, bool) or amount is None:
        raise InvalidArgument("amount is required")
    text = amount.strip() if isinstance(amount, str) else str(amount)
    if not text:
        raise InvalidArgument("amount is required")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise InvalidArgument(f"amount is not a number: {text!r}")
    if not value.is_finite() or value <= 0:
        raise InvalidArgument("amount must be greater than zero")
    return text


def encode(amount: Amount, reference_id: str, merchant_name: str | None = None) -> str:
    """Build the GH-QR payload for one purchase attempt."""
    if not reference_id or not reference_id.strip():
        raise InvalidArgument("referenceId is required")

    additional_data = build_tlv([TLVItem(REFERENCE_LABEL, reference_id)])
    body = build_tlv([
        TLVItem(PAYLOAD_FORMAT_INDICATOR, "01"),
        TLVItem(POINT_OF_INITIATION, DYNAMIC_QR),
        TLVItem(MERCHANT_CATEGORY_CODE, MCC_SCHOOLS),
        TLVItem(TRANSACTION_CURRENCY, CURRENCY_GHS),
        TLVItem(TRANSACTION_AMOUNT, format_amount(amount)),
        TLVItem(COUNTRY_CODE, "GH"),
        TLVItem(MERCHANT_NAME, merchant_name or settings.MERCHANT_NAME),
        TLVItem(ADDITIONAL_DATA, additional_data),
    ])
    # Checksum covers the body only, not the "6304" header of its own field.
    return f"{body}{CRC}04{crc16_ccitt(body)}"


def verify(payload: str) -> bool:
    """True when the trailing CRC field matches the rest of the payload."""
    if len(payload) < 8 or payload[-8:-4] != f"{CRC}04":
        return False
    return crc16_ccitt(payload[:-8]) == payload[-4:]
