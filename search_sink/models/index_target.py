from typing import NamedTuple, Optional

from search_sink.models.document import to_utc_datetime
from search_sink.models.event import Event


class IndexTarget(NamedTuple):
    resolved_name: str
    alias_name: str

    @property
    def needs_alias(self) -> bool:
        return self.resolved_name != self.alias_name


def expand_index_pattern(index_pattern: str, millis: int) -> str:
    # Index names have to be lowercase, so names like %b (month abbreviations) are folded
    return to_utc_datetime(millis).strftime(index_pattern).lower()


def resolve_index(event: Event, static_index_name: str, index_pattern: Optional[str] = None) -> IndexTarget:
    """
    Picks the index a given event is written to. Without a pattern every event goes to the static index.
    With a pattern the strftime tokens are expanded against the UTC date of the event's timestamp, and the
    static index name becomes the alias that ties the time-partitioned indices together.
    """
    if index_pattern is None or not index_pattern.strip():
        return IndexTarget(static_index_name, static_index_name)
    return IndexTarget(expand_index_pattern(index_pattern, event.timestamp_millis()), static_index_name)
