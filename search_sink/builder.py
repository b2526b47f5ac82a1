import logging
from typing import Callable, List, Tuple

from search_sink.environment import SinkConfig, split_host_list
from search_sink.sink import SearchSink

logger = logging.getLogger(__name__)

SINK_NAME = "searchSink"
USAGE = f"usage: {SINK_NAME}[([clusterName[, indexName[, esHostNames]]])]"


def build_sink(*argv: str) -> SearchSink:
    """
    Builds a sink from the positional arguments a host agent passes along:
    cluster name, static index name and a comma separated host list, each optional from the right.
    """
    if len(argv) > 3:
        raise ValueError(USAGE)
    config = SinkConfig()
    if len(argv) > 0:
        config.cluster_name = argv[0]
    if len(argv) > 1:
        config.static_index_name = argv[1]
    if len(argv) > 2:
        config.host_list = split_host_list(argv[2])
    logger.info(f"Building {SINK_NAME} for cluster [{config.cluster_name}], index [{config.static_index_name}], "
                f"hosts {config.host_list}")
    return SearchSink(config)


def get_sink_builders() -> List[Tuple[str, Callable[..., SearchSink]]]:
    return [(SINK_NAME, build_sink)]
