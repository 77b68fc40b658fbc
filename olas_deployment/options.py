from pathlib import Path

import click

from olas_deployment.constants import SUPPORTED_CHAINS
from olas_deployment.types import MinInt

chain_option = click.option(
    "--chain",
    "-c",
    help="Target chain of the pipeline",
    type=click.Choice(SUPPORTED_CHAINS),
    required=True,
)

pipeline_option = click.option(
    "--pipeline",
    "-p",
    "pipeline_filepath",
    help="Filepath of a pipeline YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

pipelines_option = click.option(
    "--pipeline",
    "-p",
    "pipeline_filepaths",
    help="Filepath of a pipeline YAML file; may be repeated",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
    multiple=True,
)

globals_option = click.option(
    "--globals",
    "-g",
    "globals_filepath",
    help="Filepath of the seed config (globals) JSON file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

start_option = click.option(
    "--from-step",
    "-s",
    "start",
    help="Index of the first step to execute; earlier steps are expected in the globals file",
    type=MinInt(0),
    default=0,
    show_default=True,
)

output_option = click.option(
    "--output",
    "-o",
    "output_filepath",
    help="Filepath of the verification artifact to write",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)
