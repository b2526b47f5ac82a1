from collections import defaultdict
import re
from typing import Dict, List, Optional
from urllib.parse import unquote, urlparse
import uuid

from search_sink.models.cluster import AuthMethod, Cluster
from search_sink.models.event import Event, Priority

ANY_NODE = r"https?://[^/]+"
ROOT_URL = re.compile(rf"{ANY_NODE}/$")
NODES_URL = re.compile(rf"{ANY_NODE}/_nodes/http$")
# Index and type names never start with an underscore, API endpoints always do
DOCUMENT_URL = re.compile(rf"{ANY_NODE}/[^/_][^/]*/[^/_][^/]*$")
TYPELESS_DOCUMENT_URL = re.compile(rf"{ANY_NODE}/[^/_][^/]*/_doc$")
ALIAS_URL = re.compile(rf"{ANY_NODE}/[^/_][^/]*/_alias/[^/]+$")


def create_valid_cluster(endpoint: str = "https://opensearchtarget:9200",
                         allow_insecure: bool = True,
                         auth_type: AuthMethod = AuthMethod.BASIC_AUTH,
                         details: Optional[Dict] = None,
                         **extra):

    if details is None and auth_type == AuthMethod.BASIC_AUTH:
        details = {"username": "admin", "password": "myStrongPassword123!"}

    custom_cluster_config = {
        "endpoint": endpoint,
        "allow_insecure": allow_insecure,
        auth_type.name.lower(): details if details else {},
        **extra
    }
    return Cluster(custom_cluster_config)


def create_event(body: str = "message goes here", timestamp: int = 0, priority: Priority = Priority.INFO,
                 host: str = "localhost", attributes: Optional[Dict[str, str]] = None) -> Event:
    return Event(body=body.encode("utf-8"),
                 timestamp=timestamp,
                 priority=priority,
                 host=host,
                 attributes={k: v.encode("utf-8") for k, v in (attributes or {}).items()})


class FakeSearchCluster:
    """
    Just enough of an Elasticsearch cluster on top of requests_mock to check what the sink indexed:
    documents per index, aliases, and searching through an alias.
    """

    def __init__(self, requests_mock, cluster_name: str = "elasticsearch",
                 publish_address: str = "localhost/127.0.0.1:9200", version: str = "7.10.2",
                 distribution: Optional[str] = None):
        self.cluster_name = cluster_name
        self.version = {"number": version}
        if distribution is not None:
            self.version["distribution"] = distribution
        # Elasticsearch 8 and OpenSearch reject custom mapping types
        self.typeless = distribution == "opensearch" or int(version.split(".")[0]) >= 8
        self.documents: Dict[str, List[Dict]] = defaultdict(list)
        self.types: Dict[str, List[str]] = defaultdict(list)
        self.aliases: Dict[str, set] = defaultdict(set)
        self.alias_requests = 0
        self.reject_writes = False
        self.fail_aliases = False

        requests_mock.get(ROOT_URL, json=lambda request, context: {
            "cluster_name": self.cluster_name,
            "version": self.version,
        })
        requests_mock.get(NODES_URL, json={
            "nodes": {"node-1": {"http": {"publish_address": publish_address}}}
        })
        requests_mock.post(DOCUMENT_URL, json=self._index_document)
        requests_mock.post(TYPELESS_DOCUMENT_URL, json=self._index_document)
        requests_mock.put(ALIAS_URL, json=self._put_alias)

    @staticmethod
    def _path_segments(request) -> List[str]:
        return [unquote(segment) for segment in urlparse(request.url).path.strip("/").split("/")]

    def _index_document(self, request, context):
        index_name, type_name = self._path_segments(request)
        if self.typeless and type_name != "_doc":
            context.status_code = 400
            return {"error": {"type": "illegal_argument_exception"}, "status": 400}
        if self.reject_writes:
            context.status_code = 400
            return {"error": {"type": "mapper_parsing_exception"}, "status": 400}
        doc_id = uuid.uuid4().hex
        self.documents[index_name].append(request.json())
        self.types[index_name].append(type_name)
        context.status_code = 201
        return {"_index": index_name, "_type": type_name, "_id": doc_id, "result": "created"}

    def _put_alias(self, request, context):
        index_name, _, alias_name = self._path_segments(request)
        self.alias_requests += 1
        if self.fail_aliases:
            context.status_code = 500
            return {"error": {"type": "cluster_block_exception"}, "status": 500}
        self.aliases[alias_name].add(index_name)
        return {"acknowledged": True}

    def search(self, name: str) -> List[Dict]:
        """All documents of the index `name` and of every index aliased as `name`."""
        hits = list(self.documents.get(name, []))
        for index_name in sorted(self.aliases.get(name, set())):
            if index_name != name:
                hits.extend(self.documents.get(index_name, []))
        return hits

    def total_documents(self) -> int:
        return sum(len(docs) for docs in self.documents.values())
