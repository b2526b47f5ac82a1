import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from search_sink.models.event import Event
from search_sink.models.fragment import classify_and_render

logger = logging.getLogger(__name__)

TIMESTAMP_FIELD = "timestamp"
HOST_FIELD = "host"
PRIORITY_FIELD = "priority"
MESSAGE_FIELD = "message"
FIELDS_FIELD = "fields"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_utc_datetime(millis: int) -> datetime:
    # timedelta arithmetic keeps exact milliseconds, unlike float seconds
    return EPOCH + timedelta(milliseconds=millis)


def format_timestamp(millis: int) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 1970-01-01T00:00:00.000Z"""
    moment = to_utc_datetime(millis)
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{moment.microsecond // 1000:03d}Z"


def build_document(event: Event, charset: str) -> Dict[str, Any]:
    """
    Builds the document indexed for a single event. Any field that fails to render aborts the whole
    document: the TranscodeError is propagated to the caller and nothing partial is returned.
    """
    message = classify_and_render(event.body, MESSAGE_FIELD, charset)
    fields = {}
    for name, value in event.attributes.items():
        fields[name] = classify_and_render(value, name, charset).to_field_value()

    document = {
        TIMESTAMP_FIELD: format_timestamp(event.timestamp_millis()),
        HOST_FIELD: event.host,
        PRIORITY_FIELD: event.priority.name,
        MESSAGE_FIELD: message.to_message_value(),
        FIELDS_FIELD: fields,
    }
    logger.debug(f"Built document for event from host [{event.host}] with {len(fields)} attribute field(s)")
    return document
