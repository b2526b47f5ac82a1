import logging
import threading
from typing import Dict, List, Optional

from search_sink.dispatcher import Dispatcher
from search_sink.environment import SinkConfig
from search_sink.exceptions import SinkNotStartedError
from search_sink.models.cluster import Cluster
from search_sink.models.document import build_document
from search_sink.models.event import Event
from search_sink.models.index_target import resolve_index

logger = logging.getLogger(__name__)

FAILED_EVENT_COUNT = "failed_event_count"
INDEXED_EVENT_COUNT = "indexed_event_count"


class SearchSink:
    """
    Entry point for the host agent: `start()`, then `on_event()` for every event, then `stop()`.

    A bad event never stops the stream. Whatever goes wrong while building, routing or writing its document
    is logged and counted in the failed event counter, and the event is dropped.
    """

    def __init__(self, config: Optional[SinkConfig] = None, cluster: Optional[Cluster] = None) -> None:
        self.config = config if config is not None else SinkConfig()
        self.cluster = cluster if cluster is not None else Cluster(self.config.cluster_config())
        self.dispatcher = Dispatcher(self.cluster)
        self._failed_events = 0
        self._indexed_events = 0
        self._metrics_lock = threading.Lock()
        self._started = False

    @property
    def cluster_name(self) -> str:
        return self.config.cluster_name

    @property
    def index_name(self) -> str:
        return self.config.static_index_name

    @property
    def index_type(self) -> str:
        return self.config.index_type

    @property
    def index_pattern(self) -> Optional[str]:
        return self.config.index_pattern

    @property
    def host_names(self) -> List[str]:
        return list(self.config.host_list)

    @property
    def charset(self) -> str:
        return self.config.charset

    def start(self) -> None:
        if self._started:
            return
        logger.info(f"Starting sink for cluster [{self.cluster_name}], index [{self.index_name}]")
        self.cluster.connect()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        logger.info(f"Stopping sink, metrics: {self.read_metrics()}")
        self.cluster.close()
        self.dispatcher.reset()
        self._started = False

    def __enter__(self) -> "SearchSink":
        self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()

    def on_event(self, event: Event) -> bool:
        try:
            if not self._started:
                raise SinkNotStartedError()
            document = build_document(event, self.charset)
            index_target = resolve_index(event, self.index_name, self.index_pattern)
            self.dispatcher.submit(document, index_target, self.index_type)
        except Exception as e:
            logger.error(f"Dropping event from host [{event.host}] with body {event.body!r}: "
                         f"{type(e).__name__} {e}")
            self.record_failure()
            return False
        with self._metrics_lock:
            self._indexed_events += 1
        return True

    def record_failure(self) -> None:
        with self._metrics_lock:
            self._failed_events += 1

    def read_metrics(self) -> Dict[str, int]:
        with self._metrics_lock:
            return {FAILED_EVENT_COUNT: self._failed_events, INDEXED_EVENT_COUNT: self._indexed_events}
