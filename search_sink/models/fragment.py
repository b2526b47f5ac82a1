import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from search_sink.exceptions import TranscodeError

logger = logging.getLogger(__name__)

TEXT_KEY = "text"
# Leading bytes ignored when sniffing the content type: ASCII whitespace and the UTF-8 byte order mark
_IGNORED_LEADING_BYTES = b" \t\r\n"
_UTF8_BOM = b"\xef\xbb\xbf"
_STRUCTURED_START_BYTES = (ord("{"), ord("["))


@dataclass(frozen=True)
class TextFragment:
    """Opaque payload, decoded with the configured charset."""
    text: str

    def to_message_value(self) -> dict:
        return {TEXT_KEY: self.text}

    def to_field_value(self) -> str:
        return self.text


@dataclass(frozen=True)
class StructuredFragment:
    """Payload that parsed as JSON. The tree is kept exactly as parsed."""
    tree: Any

    def to_message_value(self) -> Any:
        return self.tree

    def to_field_value(self) -> Any:
        return self.tree


FieldFragment = Union[TextFragment, StructuredFragment]


def is_structured(raw_bytes: bytes) -> bool:
    """
    Sniffs whether the payload declares itself as JSON. Only the bytes are consulted: the first significant
    byte has to open an object or an array.
    """
    content = raw_bytes
    if content.startswith(_UTF8_BOM):
        content = content[len(_UTF8_BOM):]
    content = content.lstrip(_IGNORED_LEADING_BYTES)
    return len(content) > 0 and content[0] in _STRUCTURED_START_BYTES


def classify_and_render(raw_bytes: bytes, field_name: str, charset: str) -> FieldFragment:
    if is_structured(raw_bytes):
        try:
            # json.loads detects utf-8/16/32 (and a BOM) on its own for bytes input
            tree = json.loads(raw_bytes)
        except ValueError as e:
            raise TranscodeError(field_name, f"Field [{field_name}] looks like JSON but failed to parse: {e}") from e
        logger.debug(f"Field [{field_name}] rendered as structured content")
        return StructuredFragment(tree)

    try:
        text = raw_bytes.decode(charset)
    except (UnicodeDecodeError, LookupError) as e:
        raise TranscodeError(field_name, f"Field [{field_name}] could not be decoded as {charset}: {e}") from e
    return TextFragment(text)
