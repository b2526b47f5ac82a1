from enum import Enum
import itertools
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional
from urllib.parse import quote, urlparse

import boto3
from cerberus import Validator
import requests
import requests.auth
from requests.auth import HTTPBasicAuth

from search_sink.exceptions import AliasError, ClusterConnectionError, SubmissionError
from search_sink.models.schema_tools import contains_at_most_one_of
from search_sink.models.utils import SigV4AuthPlugin

requests.packages.urllib3.disable_warnings()  # ignore: type

logger = logging.getLogger(__name__)

AuthMethod = Enum("AuthMethod", ["NO_AUTH", "BASIC_AUTH", "SIGV4"])
HttpMethod = Enum("HttpMethod", ["GET", "POST", "PUT", "DELETE", "HEAD"])

DEFAULT_ENDPOINT = "http://localhost:9200"
DEFAULT_PORT = 9200
NODES_HTTP_PATH = "/_nodes/http"
TYPELESS_DOC_ENDPOINT = "_doc"
JSON_HEADERS = {"Content-Type": "application/json"}


def validate_basic_auth_options(field, value, error):
    username = value.get("username")
    password = value.get("password")
    user_secret_arn = value.get("user_secret_arn")

    has_user_pass = username is not None and password is not None
    has_user_secret = user_secret_arn is not None

    if has_user_pass and has_user_secret:
        error(field, "Cannot provide both (username + password) and user_secret_arn")
    elif has_user_pass and (username == "" or password == ""):
        error(field, "Both username and password must be non-empty")
    elif not has_user_pass and not has_user_secret:
        error(field, "Must provide either (username + password) or user_secret_arn")


BASIC_AUTH_SCHEMA = {
    "type": "dict",
    "schema": {
        "username": {"type": "string", "required": False},
        "password": {"type": "string", "required": False},
        "user_secret_arn": {"type": "string", "required": False},
    },
    "check_with": validate_basic_auth_options
}

SIGV4_SCHEMA = {
    "nullable": True,
    "type": "dict",
    "schema": {
        "region": {"type": "string", "required": False},
        "service": {"type": "string", "required": False}
    }
}

SCHEMA = {
    "cluster": {
        "type": "dict",
        "schema": {
            "endpoint": {"type": "string", "required": False},
            "hosts": {"type": "list", "schema": {"type": "string", "empty": False}, "required": False},
            "cluster_name": {"type": "string", "required": False, "nullable": True},
            "allow_insecure": {"type": "boolean", "required": False},
            "timeout": {"type": "number", "required": False, "nullable": True, "min": 0},
            "no_auth": {"nullable": True},
            "basic_auth": BASIC_AUTH_SCHEMA,
            "sigv4": SIGV4_SCHEMA
        },
        "check_with": contains_at_most_one_of({auth.name.lower() for auth in AuthMethod})
    }
}


def is_typed_version(distribution: Optional[str], number: Optional[str]) -> bool:
    """
    Elasticsearch up to 7.x still accepts a custom type in the index path. Elasticsearch 8 and every
    OpenSearch release only accept `_doc`.
    """
    if distribution == "opensearch":
        return False
    try:
        major = int(str(number).split(".")[0])
    except ValueError:
        return True
    return major < 8


class AuthDetails(NamedTuple):
    username: str
    password: str


def normalize_node_address(address: str, scheme: str) -> str:
    """Turns `host`, `host:port` or a full url into a base url without trailing slash."""
    address = address.strip()
    if "://" not in address:
        address = f"{scheme}://{address}"
    parsed = urlparse(address)
    port = parsed.port or DEFAULT_PORT
    return f"{parsed.scheme}://{parsed.hostname}:{port}"


class Cluster:
    """
    An Elasticsearch or OpenSearch cluster that events are indexed into.

    Nodes are either the explicit host list from the config, or, when no hosts are given, discovered
    through the `_nodes/http` API of the configured endpoint. Requests are spread round-robin over the nodes.
    """

    config: Dict
    endpoint: str = DEFAULT_ENDPOINT
    hosts: List[str]
    cluster_name: Optional[str] = None
    auth_type: AuthMethod = AuthMethod.NO_AUTH
    auth_details: Optional[Dict[str, Any]] = None
    allow_insecure: bool = False
    timeout: Optional[float] = None
    # Set from the version reported on connect
    supports_types: bool = True

    def __init__(self, config: Optional[Dict] = None) -> None:
        config = config if config is not None else {}
        logger.info(f"Initializing cluster with config: {self._redacted(config)}")
        v = Validator(SCHEMA)
        if not v.validate({'cluster': config}):
            raise ValueError("Invalid config file for cluster", v.errors)

        self.config = config
        self.endpoint = config.get("endpoint", DEFAULT_ENDPOINT).rstrip("/")
        self.hosts = list(config.get("hosts", []))
        self.cluster_name = config.get("cluster_name")
        self.timeout = config.get("timeout")
        self.allow_insecure = config.get("allow_insecure", False) if self.endpoint.startswith(
            "https") else config.get("allow_insecure", True)
        if 'basic_auth' in config:
            self.auth_type = AuthMethod.BASIC_AUTH
            self.auth_details = config["basic_auth"]
        elif 'sigv4' in config:
            self.auth_type = AuthMethod.SIGV4
            self.auth_details = config["sigv4"] if config["sigv4"] is not None else {}
        else:
            self.auth_type = AuthMethod.NO_AUTH

        self.nodes: List[str] = []
        self._node_cycle = None
        self._session: Optional[requests.Session] = None
        self._auth: Optional[requests.auth.AuthBase] = None

    @staticmethod
    def _redacted(config: Dict) -> Dict:
        if "basic_auth" in config and isinstance(config["basic_auth"], dict) and "password" in config["basic_auth"]:
            return {**config, "basic_auth": {**config["basic_auth"], "password": "********"}}
        return config

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    def get_basic_auth_details(self) -> AuthDetails:
        """Return a tuple of (username, password) for basic auth. Will use username/password if provided in plaintext,
        otherwise will pull both username/password as keys in the specified secrets manager secret.
        """
        assert self.auth_type == AuthMethod.BASIC_AUTH
        assert self.auth_details is not None  # for mypy's sake
        if "username" in self.auth_details and "password" in self.auth_details:
            return AuthDetails(username=self.auth_details["username"], password=self.auth_details["password"])
        client = boto3.client("secretsmanager")
        secret_response = client.get_secret_value(SecretId=self.auth_details["user_secret_arn"])
        try:
            secret_dict = json.loads(secret_response["SecretString"])
        except json.JSONDecodeError:
            raise ValueError(f"Expected secret {self.auth_details['user_secret_arn']} to be a JSON object with username"
                             f" and password fields")

        missing_keys = [k for k in ("username", "password") if k not in secret_dict]
        if missing_keys:
            raise ValueError(
                f"Secret {self.auth_details['user_secret_arn']} is missing required key(s): {', '.join(missing_keys)}"
            )
        return AuthDetails(username=secret_dict["username"], password=secret_dict["password"])

    def _get_sigv4_details(self, force_region=False) -> tuple[str, Optional[str]]:
        """Return the service signing name and region name. If force_region is true,
        it will instantiate a boto3 session to guarantee that the region is not None.
        """
        assert self.auth_type == AuthMethod.SIGV4
        if force_region and 'region' not in self.auth_details:
            session = boto3.session.Session()
            return self.auth_details.get("service", "es"), self.auth_details.get("region", session.region_name)
        return self.auth_details.get("service", "es"), self.auth_details.get("region", None)

    def _generate_auth_object(self) -> requests.auth.AuthBase | None:
        if self.auth_type == AuthMethod.BASIC_AUTH:
            auth_details = self.get_basic_auth_details()
            return HTTPBasicAuth(auth_details.username, auth_details.password)
        elif self.auth_type == AuthMethod.SIGV4:
            service_name, region_name = self._get_sigv4_details(force_region=True)
            return SigV4AuthPlugin(service_name, region_name)
        elif self.auth_type is AuthMethod.NO_AUTH:
            return None
        raise NotImplementedError(f"Auth type {self.auth_type} not implemented")

    def _next_node(self) -> str:
        if self._node_cycle is None:
            return self.endpoint
        return next(self._node_cycle)

    def call_api(self, path, method: HttpMethod = HttpMethod.GET, data=None, headers=None,
                 timeout=None, session=None, raise_error=True, base_url=None, **kwargs) -> requests.Response:
        """
        Calls an API on the cluster, on the next node in rotation unless a base url is given.
        """
        if session is None:
            session = self._session if self._session is not None else requests.Session()
        auth = self._auth if self._session is not None else self._generate_auth_object()
        url = f"{base_url or self._next_node()}{path}"

        r = session.request(
            method.name,
            url,
            verify=(not self.allow_insecure),
            params=kwargs.get('params', {}),
            auth=auth,
            data=data,
            headers=headers,
            timeout=timeout if timeout is not None else self.timeout
        )
        logger.debug(f"call_api request {method.name} {url}, response: {r.status_code} {r.text[:1000]}")
        if raise_error:
            r.raise_for_status()
        return r

    def _discover_nodes(self) -> List[str]:
        scheme = urlparse(self.endpoint).scheme or "http"
        r = self.call_api(NODES_HTTP_PATH, base_url=self.endpoint)
        discovered = []
        for node_id, node in r.json().get("nodes", {}).items():
            publish_address = node.get("http", {}).get("publish_address")
            if not publish_address:
                logger.debug(f"Node {node_id} has no http publish address, skipping")
                continue
            # Newer versions report "hostname/ip:port"
            discovered.append(normalize_node_address(publish_address.split("/")[-1], scheme))
        return discovered

    def _inspect_cluster(self) -> None:
        info = self.call_api("/").json()
        actual_name = info.get("cluster_name")
        if self.cluster_name and actual_name != self.cluster_name:
            raise ClusterConnectionError(f"Connected to cluster [{actual_name}] but expected [{self.cluster_name}]. "
                                         f"Set cluster_name to [{actual_name}] to index into this cluster.")
        version = info.get("version", {})
        self.supports_types = is_typed_version(version.get("distribution"), version.get("number"))
        logger.info(f"Connected to cluster [{actual_name}] running {version.get('distribution', 'elasticsearch')} "
                    f"{version.get('number')}")
        if not self.supports_types:
            logger.info("Cluster has no mapping types, documents are written to _doc")

    def connect(self) -> None:
        if self.is_connected:
            logger.debug("Cluster is already connected")
            return
        self._session = requests.Session()
        try:
            self._auth = self._generate_auth_object()
            scheme = urlparse(self.endpoint).scheme or "http"
            if self.hosts:
                logger.info(f"Using provided hosts: {len(self.hosts)}")
                self.nodes = [normalize_node_address(host, scheme) for host in self.hosts]
            else:
                logger.info("Using auto-discovery mode")
                self.nodes = self._discover_nodes() or [self.endpoint]
            for node in self.nodes:
                logger.info(f"Adding node: {node}")
            self._node_cycle = itertools.cycle(self.nodes)
            self._inspect_cluster()
        except (requests.exceptions.RequestException, ValueError) as e:
            self.close()
            raise ClusterConnectionError(f"Unable to connect to cluster at {self.endpoint}") from e
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
        self._session = None
        self._auth = None
        self._node_cycle = None
        self.nodes = []
        self.supports_types = True

    def write(self, index_name: str, type_name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Indexes a single document. No id is sent, the cluster assigns one. On clusters without mapping types
        the type name is not part of the request.
        """
        endpoint_name = type_name if self.supports_types else TYPELESS_DOC_ENDPOINT
        path = f"/{quote(index_name, safe='')}/{quote(endpoint_name, safe='')}"
        try:
            r = self.call_api(path, method=HttpMethod.POST, data=json.dumps(document), headers=JSON_HEADERS)
            return r.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise SubmissionError(f"Failed to index document into [{index_name}/{type_name}]: {e}") from e

    def add_alias(self, index_name: str, alias_name: str) -> Dict[str, Any]:
        """
        Points `alias_name` at `index_name`. Putting an alias that already exists is acknowledged by the cluster.
        """
        path = f"/{quote(index_name, safe='')}/_alias/{quote(alias_name, safe='')}"
        try:
            r = self.call_api(path, method=HttpMethod.PUT)
            return r.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise AliasError(f"Failed to add alias [{alias_name}] to index [{index_name}]: {e}") from e

    def refresh(self, index_name: str) -> None:
        self.call_api(f"/{quote(index_name, safe='')}/_refresh", method=HttpMethod.POST)

    def count(self, index_name: str) -> int:
        r = self.call_api(f"/{quote(index_name, safe='')}/_count")
        return r.json()["count"]
