import json
import logging

import click

from search_sink.environment import Environment, SinkConfig
from search_sink.exceptions import ClusterConnectionError
from search_sink.models.event import Event
from search_sink.sink import FAILED_EVENT_COUNT, SearchSink

logger = logging.getLogger(__name__)


class Context(object):
    def __init__(self, config_file) -> None:
        self.config_file = config_file
        try:
            if config_file:
                self.sink_config = Environment(config_file=config_file).sink_config
            else:
                self.sink_config = SinkConfig()
        except Exception as e:
            raise click.ClickException(str(e))
        self.json = False


def create_sink(sink_config: SinkConfig) -> SearchSink:
    try:
        return SearchSink(sink_config)
    except ValueError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--config-file", default=None,
              help="Path to a YAML config file with `sink` and `cluster` sections. sink.cluster_name defaults to "
                   "`elasticsearch` and must match the name reported by the cluster, OpenSearch clusters are "
                   "usually named `opensearch`.")
@click.option("--json", is_flag=True)
@click.option('-v', '--verbose', count=True, help="Verbosity level. Default is warn, -v is info, -vv is debug.")
@click.pass_context
def cli(ctx, config_file, json, verbose):
    logging.basicConfig(level=logging.WARN - (10 * verbose))
    logger.info(f"Logging set to {logging.getLevelName(logger.getEffectiveLevel())}")
    ctx.obj = Context(config_file)
    ctx.obj.json = json


@cli.command(name="forward")
@click.argument("inputfile", type=click.File('r'), default="-")
@click.pass_obj
def forward_cmd(ctx, inputfile):
    """Indexes every JSON-lines event record read from INPUTFILE (stdin by default)."""
    sink = create_sink(ctx.sink_config)
    try:
        sink.start()
    except ClusterConnectionError as e:
        raise click.ClickException(str(e))

    try:
        for line_number, line in enumerate(inputfile, start=1):
            if not line.strip():
                continue
            try:
                event = Event.from_dict(json.loads(line), ctx.sink_config.charset)
            except ValueError as e:
                logger.error(f"Skipping unreadable event record on line {line_number}: {e}")
                sink.record_failure()
                continue
            sink.on_event(event)
    finally:
        sink.stop()

    metrics = sink.read_metrics()
    if ctx.json:
        click.echo(json.dumps(metrics))
    else:
        for name, value in metrics.items():
            click.echo(f"{name}: {value}")
    if metrics[FAILED_EVENT_COUNT] > 0:
        raise click.exceptions.Exit(1)


@cli.command(name="check")
@click.pass_obj
def check_cmd(ctx):
    """Checks that the configured cluster can be reached."""
    sink = create_sink(ctx.sink_config)
    try:
        sink.start()
    except ClusterConnectionError as e:
        cause = f": {e.__cause__}" if e.__cause__ else ""
        raise click.ClickException(f"{e}{cause}")
    nodes = list(sink.cluster.nodes)
    sink.stop()
    if ctx.json:
        click.echo(json.dumps({"connected": True, "nodes": nodes}))
        return
    click.echo("Successfully connected!")
    for node in nodes:
        click.echo(f"  {node}")


def main():
    cli()


if __name__ == "__main__":
    main()
