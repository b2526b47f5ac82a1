from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from cerberus import Validator

from search_sink.models.schema_tools import is_known_charset

logger = logging.getLogger(__name__)

DEFAULT_CLUSTER_NAME = "elasticsearch"
DEFAULT_INDEX_NAME = "flume"
DEFAULT_INDEX_TYPE = "log"
DEFAULT_CHARSET = "utf-8"


def split_host_list(host_list: Union[str, List[str], None]) -> List[str]:
    """Accepts "host1,host2" or a list; blank entries are dropped."""
    if host_list is None:
        return []
    if isinstance(host_list, str):
        host_list = host_list.split(",")
    return [host.strip() for host in host_list if host and host.strip()]


SINK_SCHEMA = {
    "cluster_name": {"type": "string", "required": False, "empty": False},
    "static_index_name": {"type": "string", "required": False, "empty": False},
    "index_type": {"type": "string", "required": False, "empty": False},
    "index_pattern": {"type": "string", "required": False, "nullable": True},
    "host_list": {"type": ["string", "list"], "required": False, "nullable": True},
    "charset": {"type": "string", "required": False, "check_with": is_known_charset},
}

SCHEMA = {
    "sink": {"type": "dict", "required": False, "schema": SINK_SCHEMA},
    "cluster": {"type": "dict", "required": False},
}


@dataclass
class SinkConfig:
    cluster_name: str = DEFAULT_CLUSTER_NAME
    static_index_name: str = DEFAULT_INDEX_NAME
    index_type: str = DEFAULT_INDEX_TYPE
    index_pattern: Optional[str] = None
    # Empty means the cluster nodes are discovered from the endpoint
    host_list: List[str] = field(default_factory=list)
    charset: str = DEFAULT_CHARSET
    cluster: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.host_list = split_host_list(self.host_list)
        if self.index_pattern is not None and not self.index_pattern.strip():
            self.index_pattern = None

    @classmethod
    def from_dict(cls, sink: Optional[Dict[str, Any]] = None, cluster: Optional[Dict[str, Any]] = None) -> "SinkConfig":
        sink = sink or {}
        v = Validator(SINK_SCHEMA)
        if not v.validate(sink):
            raise ValueError("Invalid config for sink", v.errors)
        return cls(cluster=dict(cluster or {}), **sink)

    def cluster_config(self) -> Dict[str, Any]:
        """The cluster section with the sink level cluster name and host list folded in."""
        config = dict(self.cluster)
        config["cluster_name"] = self.cluster_name
        if self.host_list:
            config["hosts"] = list(self.host_list)
        return config


class Environment:
    config: Dict
    sink_config: SinkConfig

    def __init__(self, config: Optional[Dict] = None, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize the environment either from a configuration file or a direct configuration object.

        :param config: Direct configuration object (overrides config_file).
        :param config_file: Path to the YAML config file.
        """
        if isinstance(config, Dict):
            self.config = config
            logger.info("Using provided config")
        elif config_file:
            logger.info(f"Loading config file: {config_file}")
            with open(config_file) as f:
                self.config = yaml.safe_load(f) or {}
        else:
            raise ValueError("Either config or config_file must be provided.")

        v = Validator(SCHEMA)
        if not v.validate(self.config):
            logger.error(f"Config file validation errors: {v.errors}")
            raise ValueError("Invalid config file", v.errors)

        self.sink_config = SinkConfig.from_dict(self.config.get("sink"), self.config.get("cluster"))
        logger.info(f"Sink configured for index [{self.sink_config.static_index_name}] "
                    f"with pattern [{self.sink_config.index_pattern}]")
