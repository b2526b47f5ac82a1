import logging
import threading
from typing import Any, Dict, Set, Tuple

from search_sink.exceptions import AliasError
from search_sink.models.cluster import Cluster
from search_sink.models.index_target import IndexTarget

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Writes built documents to the cluster and keeps the static index name aliased over every
    time-partitioned index that received a document.
    """

    def __init__(self, cluster: Cluster) -> None:
        self.cluster = cluster
        self._aliased: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def submit(self, document: Dict[str, Any], index_target: IndexTarget, type_name: str) -> Dict[str, Any]:
        # Exactly one attempt. SubmissionError is left to the caller.
        response = self.cluster.write(index_target.resolved_name, type_name, document)
        logger.debug(f"Indexed document into [{index_target.resolved_name}/{type_name}]: {response.get('_id')}")
        if index_target.needs_alias:
            self._ensure_alias(index_target)
        return response

    def _ensure_alias(self, index_target: IndexTarget) -> None:
        key = (index_target.resolved_name, index_target.alias_name)
        with self._lock:
            if key in self._aliased:
                return
        try:
            self.cluster.add_alias(index_target.resolved_name, index_target.alias_name)
        except AliasError as e:
            # The document is already indexed; only discoverability through the alias is affected
            logger.warning(f"Unable to alias [{index_target.resolved_name}] as [{index_target.alias_name}]: {e}")
            return
        with self._lock:
            self._aliased.add(key)
        logger.info(f"Aliased index [{index_target.resolved_name}] as [{index_target.alias_name}]")

    def reset(self) -> None:
        with self._lock:
            self._aliased.clear()
