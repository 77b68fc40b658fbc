from pathlib import Path

import click

from olas_deployment.constants import DEPLOYER_KEY
from olas_deployment.errors import PipelineError
from olas_deployment.graph import DeploymentGraph, DeploymentStep, ProxyDeploymentStep
from olas_deployment.options import (
    chain_option,
    globals_option,
    output_option,
    pipeline_option,
    pipelines_option,
    start_option,
)
from olas_deployment.store import GlobalConfigStore
from olas_deployment.types import ChecksumAddress
from olas_deployment.utils import list_pipelines, to_json_value
from olas_deployment.verification import VerificationArgsBuilder, write_verification_artifacts


@click.group()
def cli():
    """Plan deployment pipelines and build block explorer verification arguments."""


@cli.command("list")
def list_command():
    """List the pipelines shipped with this package."""
    for filepath in list_pipelines():
        try:
            graph = DeploymentGraph.from_yaml(filepath)
        except PipelineError as e:
            raise click.ClickException(str(e))
        print(f"{graph.chain}/{graph.name}: {len(graph)} step(s) [{filepath}]")


@cli.command()
@pipeline_option
@globals_option
@start_option
@click.option(
    "--deployer",
    help="Address of the deploying account, for pipelines that reference $deployer",
    type=ChecksumAddress(),
    required=False,
)
def plan(pipeline_filepath, globals_filepath, start, deployer):
    """Check a pipeline against a seed config without deploying anything."""
    try:
        graph = DeploymentGraph.from_yaml(pipeline_filepath)
        store = GlobalConfigStore.from_file(globals_filepath, chain=graph.chain)
        if deployer and DEPLOYER_KEY not in store:
            store.set(DEPLOYER_KEY, deployer)
        graph.validate(store.keys(), start=start)
    except (PipelineError, ValueError) as e:
        raise click.ClickException(str(e))

    print(f"Pipeline: {graph.chain}/{graph.name} (chain id {graph.chain_id})")
    for step in graph.steps[start:]:
        if isinstance(step, ProxyDeploymentStep):
            kind = f"proxy -> {step.output_key} [{step.initializer!r}]"
        elif isinstance(step, DeploymentStep):
            kind = f"deploy -> {step.output_key}"
        else:
            kind = f"transact {step.method}"
        print(f"({step.index}) {step.name} ({step.contract_type}): {kind}")
        pending = [key for key in step.referenced_keys() if key not in store]
        if pending:
            print(f"\twritten by earlier steps: {', '.join(pending)}")
    print("(i) Pipeline is consistent with the seed config.")


@cli.command("verify-args")
@pipelines_option
@globals_option
@chain_option
@click.option(
    "--contract-name",
    "-n",
    "contract_names",
    help="Deployment to build arguments for; defaults to all deployments on the chain",
    type=click.STRING,
    multiple=True,
)
@output_option
def verify_args(pipeline_filepaths, globals_filepath, chain, contract_names, output_filepath):
    """Build the constructor arguments block explorers need to verify deployments."""
    try:
        graphs = [DeploymentGraph.from_yaml(filepath) for filepath in pipeline_filepaths]
        store = GlobalConfigStore.from_file(globals_filepath, chain=chain)
        builder = VerificationArgsBuilder(graphs=graphs, stores={chain: store})
        if contract_names:
            records = [builder.build_record(name, chain) for name in contract_names]
        else:
            records = builder.build_all(chain)
    except (PipelineError, ValueError) as e:
        raise click.ClickException(str(e))

    if not records:
        raise click.ClickException(f"No deployments declared for chain '{chain}'.")

    for record in records:
        print(f"\n{record.name} ({record.contract_type}) at {record.address}")
        for value in to_json_value(record.arguments):
            print(f"\t{value}")

    if output_filepath is None:
        chain_graphs = [graph for graph in graphs if graph.chain == chain]
        output_filepath = Path(chain_graphs[0].artifact_filepath)
    filepath = write_verification_artifacts(records, output_filepath)
    print(f"(i) Verification arguments written to {filepath}!")


if __name__ == "__main__":
    cli()
