#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from olas_deployment.backends import ApeBackend
from olas_deployment.errors import PipelineError
from olas_deployment.graph import DeploymentGraph
from olas_deployment.options import globals_option, pipeline_option, start_option
from olas_deployment.store import GlobalConfigStore
from olas_deployment.utils import validate_chain_id
from olas_deployment.verification import VerificationArgsBuilder, write_verification_artifacts


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@pipeline_option
@globals_option
@start_option
@click.option(
    "--autosign",
    help="Sign deployments and transactions without asking for confirmation",
    is_flag=True,
    default=False,
)
@click.option(
    "--publish",
    help="Publish contract sources to the network's block explorer after each deployment",
    is_flag=True,
    default=False,
)
def cli(network, pipeline_filepath, globals_filepath, start, autosign, publish):
    """Deploy a pipeline to the connected network, checkpointing into the globals file."""
    graph = DeploymentGraph.from_yaml(pipeline_filepath)
    validate_chain_id(
        chain=graph.chain,
        chain_id=graph.chain_id,
        network_chain_id=networks.provider.network.chain_id,
    )
    store = GlobalConfigStore.from_file(globals_filepath, chain=graph.chain)

    print(
        f"Pipeline: {pipeline_filepath}",
        f"Globals: {globals_filepath}",
        f"Start step: {start}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        sep="\n",
    )

    backend = ApeBackend(autosign=autosign, publish=publish)
    try:
        graph.execute(store, backend, start=start, checkpoint=globals_filepath)
        builder = VerificationArgsBuilder(graphs=[graph], stores={graph.chain: store})
        records = builder.build_all(graph.chain)
    except PipelineError as e:
        raise click.ClickException(
            f"{e}\nKeys written so far are saved in {globals_filepath}; "
            f"rerun with --from-step to resume."
        )

    filepath = write_verification_artifacts(records, graph.artifact_filepath)
    print(f"(i) Verification arguments written to {filepath}!")


if __name__ == "__main__":
    cli()
