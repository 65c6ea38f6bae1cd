"""Interfaces of the host-application collaborators.

The pipeline only guarantees the shape of what it hands over; rendering the
dialog or writing the address book is the sink's business.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, TextIO

from thunderclerk.extraction.models import AnalysisOutcome, ExtractedRecord

logger = logging.getLogger(__name__)


class CategorySource(Protocol):
    def get_categories(self) -> list[str]: ...


class CalendarSink(Protocol):
    def open_event(self, record: ExtractedRecord) -> None: ...

    def open_task(self, record: ExtractedRecord) -> None: ...


class ContactSink(Protocol):
    def create(self, address_book_id: str, properties: dict[str, str]) -> None: ...


class JsonLinesSink:
    """Calendar and contact sink that writes each delivery as one JSON line.

    Stands in for the mail client when records are extracted from the
    command line.
    """

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def _write(self, kind: str, payload: dict[str, Any]) -> None:
        self.stream.write(json.dumps({"kind": kind, **payload}, ensure_ascii=False) + "\n")

    def open_event(self, record: ExtractedRecord) -> None:
        self._write("event", {"record": record})

    def open_task(self, record: ExtractedRecord) -> None:
        self._write("task", {"record": record})

    def create(self, address_book_id: str, properties: dict[str, str]) -> None:
        self._write("contact", {"address_book": address_book_id, "properties": properties})


def fetch_categories(source: CategorySource | None) -> list[str]:
    """Read categories, treating any failure of the source as "no categories"."""
    if source is None:
        return []
    try:
        categories = source.get_categories()
    except Exception as exc:
        logger.warning("Could not fetch categories, proceeding without: %s", exc)
        return []
    return [str(c) for c in categories or [] if str(c).strip()]


def contact_properties(record: ExtractedRecord) -> dict[str, str]:
    """Map a contact record onto address-book properties, omitting empty values."""
    mapping = {
        "firstName": "FirstName",
        "lastName": "LastName",
        "email": "PrimaryEmail",
        "phone": "CellularNumber",
        "company": "Company",
        "jobTitle": "JobTitle",
        "website": "WebPage1",
    }
    properties: dict[str, str] = {}
    for field_name, prop in mapping.items():
        value: Any = record.get(field_name)
        if isinstance(value, str) and value.strip():
            properties[prop] = value.strip()

    first = properties.get("FirstName", "")
    last = properties.get("LastName", "")
    if first or last:
        properties["DisplayName"] = " ".join(p for p in (first, last) if p)
    return properties


def deliver_outcome(
    outcome: AnalysisOutcome,
    calendar: CalendarSink,
    contacts: ContactSink,
    address_book_id: str,
) -> int:
    """Hand every committed record to its sink, in event/task/contact order.

    Contacts with no usable property are skipped. Returns the number of
    records delivered.
    """
    delivered = 0
    for event in outcome.events:
        calendar.open_event(event)
        delivered += 1
    for task in outcome.tasks:
        calendar.open_task(task)
        delivered += 1
    for contact in outcome.contacts:
        properties = contact_properties(contact)
        if not properties:
            logger.info("Skipping empty contact record")
            continue
        contacts.create(address_book_id, properties)
        delivered += 1
    return delivered
