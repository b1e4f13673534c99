"""Command-line interface for inspecting and managing SageMaker resources.

Usage:
    sagekit status my-training-job
    sagekit list --type processing --name-contains etl
    sagekit logs my-training-job --wait
    sagekit stop my-training-job --yes
    sagekit endpoints
    sagekit image-uri xgboost --version 1.0-1 --region us-west-2
"""

from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import Any, NamedTuple

from botocore.exceptions import BotoCoreError, ClientError
import click

from .exceptions import SageKitError

logger = logging.getLogger(__name__)


class _JobType(NamedTuple):
    describe: str
    stop: str
    logs: str | None
    status_key: str
    list_call: str
    list_key: str
    name_key: str


_JOB_TYPES = {
    "training": _JobType(
        "describe_training_job",
        "stop_training_job",
        "logs_for_job",
        "TrainingJobStatus",
        "list_training_jobs",
        "TrainingJobSummaries",
        "TrainingJobName",
    ),
    "processing": _JobType(
        "describe_processing_job",
        "stop_processing_job",
        "logs_for_processing_job",
        "ProcessingJobStatus",
        "list_processing_jobs",
        "ProcessingJobSummaries",
        "ProcessingJobName",
    ),
    "transform": _JobType(
        "describe_transform_job",
        "stop_transform_job",
        "logs_for_transform_job",
        "TransformJobStatus",
        "list_transform_jobs",
        "TransformJobSummaries",
        "TransformJobName",
    ),
    "tuning": _JobType(
        "describe_tuning_job",
        "stop_tuning_job",
        None,
        "HyperParameterTuningJobStatus",
        "list_hyper_parameter_tuning_jobs",
        "HyperParameterTuningJobSummaries",
        "HyperParameterTuningJobName",
    ),
}

_STATUS_COLORS = {
    "Completed": "green",
    "InService": "green",
    "Failed": "red",
    "Stopped": "yellow",
    "Stopping": "yellow",
    "InProgress": "blue",
    "Creating": "blue",
    "Updating": "blue",
}

_job_type_option = click.option(
    "--type",
    "job_type",
    type=click.Choice(sorted(_JOB_TYPES)),
    default="training",
    show_default=True,
    help="Kind of job",
)


def setup_verbose_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _session(ctx: click.Context) -> Any:
    """Create the session once per invocation, from --config or the environment."""
    if "session" not in ctx.obj:
        from .config import config_from_env, load_config
        from .session import Session

        config_path = ctx.obj.get("config")
        config = load_config(config_path) if config_path else config_from_env()
        logger.debug(f"Session region: {config.aws.region}")
        ctx.obj["session"] = Session(config)
    return ctx.obj["session"]


def _styled_status(status: str) -> str:
    return click.style(status, fg=_STATUS_COLORS.get(status, "white"))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to session configuration YAML (uses environment if not provided)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: Path | None) -> None:
    """SageKit - Inspect and manage SageMaker jobs and endpoints."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    setup_verbose_logging(verbose)


@cli.command()
@click.argument("job_name")
@_job_type_option
@click.pass_context
def status(ctx: click.Context, job_name: str, job_type: str) -> None:
    """Show the status of a job.

    Examples:

        sagekit status my-training-job

        sagekit status my-etl-job --type processing
    """
    kind = _JOB_TYPES[job_type]
    try:
        desc = getattr(_session(ctx), kind.describe)(job_name)
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))
        return

    click.echo("=" * 60)
    click.echo(f"Job: {job_name}")
    click.echo("=" * 60)

    job_status = desc.get(kind.status_key, "Unknown")
    secondary = desc.get("SecondaryStatus")
    line = f"Status: {_styled_status(job_status)}"
    if secondary:
        line += f" ({secondary})"
    click.echo(line)

    if desc.get("FailureReason"):
        click.echo(click.style(f"Failure: {desc['FailureReason']}", fg="red"))

    resources = desc.get("ResourceConfig") or desc.get("TransformResources")
    if resources is None and "ProcessingResources" in desc:
        resources = desc["ProcessingResources"]["ClusterConfig"]
    if resources:
        click.echo("")
        click.echo("Instance:")
        click.echo(f"  Type: {resources.get('InstanceType', 'N/A')}")
        click.echo(f"  Count: {resources.get('InstanceCount', 'N/A')}")

    click.echo("")
    click.echo("Timing:")
    for label, key in (("Created", "CreationTime"), ("Ended", "TrainingEndTime")):
        if desc.get(key):
            click.echo(f"  {label}: {desc[key]}")
    billable = desc.get("BillableTimeInSeconds")
    if billable:
        click.echo(f"  Billable: {billable / 60:.1f} minutes")

    artifacts = desc.get("ModelArtifacts", {})
    if artifacts.get("S3ModelArtifacts"):
        click.echo("")
        click.echo(f"Output: {artifacts['S3ModelArtifacts']}")


@cli.command("list")
@_job_type_option
@click.option("--name-contains", default=None, help="Filter by a substring of the job name")
@click.option("--limit", default=10, type=int, show_default=True, help="Maximum number of jobs to show")
@click.pass_context
def list_jobs(ctx: click.Context, job_type: str, name_contains: str | None, limit: int) -> None:
    """List recent jobs, newest first.

    Examples:

        sagekit list

        sagekit list --type transform --name-contains batch --limit 20
    """
    kind = _JOB_TYPES[job_type]
    kwargs: dict[str, Any] = {"SortBy": "CreationTime", "SortOrder": "Descending", "MaxResults": limit}
    if name_contains:
        kwargs["NameContains"] = name_contains

    try:
        client = _session(ctx).sagemaker_client
        summaries = getattr(client, kind.list_call)(**kwargs)[kind.list_key]
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))
        return

    if not summaries:
        click.echo(f"No {job_type} jobs found.")
        return

    click.echo(f"{'Job name':<64} {'Status':<12} Created")
    click.echo("-" * 100)
    for summary in summaries:
        job_status = summary.get(kind.status_key, "Unknown")
        padding = " " * max(0, 12 - len(job_status))
        click.echo(
            f"{summary[kind.name_key]:<64} {_styled_status(job_status)}{padding} "
            f"{summary.get('CreationTime', '')}"
        )


@cli.command()
@click.argument("job_name")
@click.option(
    "--type",
    "job_type",
    type=click.Choice(["processing", "training", "transform"]),
    default="training",
    show_default=True,
    help="Kind of job",
)
@click.option("--wait", is_flag=True, help="Tail the logs until the job completes")
@click.pass_context
def logs(ctx: click.Context, job_name: str, job_type: str, wait: bool) -> None:
    """Print the CloudWatch logs of a job.

    Examples:

        sagekit logs my-training-job --wait
    """
    kind = _JOB_TYPES[job_type]
    assert kind.logs is not None
    try:
        getattr(_session(ctx), kind.logs)(job_name, wait=wait)
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))


@cli.command()
@click.argument("job_name")
@_job_type_option
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def stop(ctx: click.Context, job_name: str, job_type: str, yes: bool) -> None:
    """Stop a running job.

    Examples:

        sagekit stop my-training-job --yes
    """
    if not yes and not click.confirm(f"Stop {job_type} job {job_name}?"):
        click.echo("Cancelled.")
        return

    kind = _JOB_TYPES[job_type]
    try:
        getattr(_session(ctx), kind.stop)(job_name)
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))
        return
    click.echo(click.style(f"Stop requested for {job_name}", fg="green"))


@cli.command()
@click.option("--limit", default=10, type=int, show_default=True, help="Maximum number of endpoints to show")
@click.pass_context
def endpoints(ctx: click.Context, limit: int) -> None:
    """List endpoints, newest first."""
    try:
        response = _session(ctx).sagemaker_client.list_endpoints(
            SortBy="CreationTime", SortOrder="Descending", MaxResults=limit
        )
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))
        return

    summaries = response["Endpoints"]
    if not summaries:
        click.echo("No endpoints found.")
        return

    for summary in summaries:
        click.echo(f"{summary['EndpointName']:<64} {_styled_status(summary['EndpointStatus'])}")


@cli.command("delete-endpoint")
@click.argument("endpoint_name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_endpoint(ctx: click.Context, endpoint_name: str, yes: bool) -> None:
    """Delete an endpoint. Its endpoint configuration and models are kept."""
    if not yes and not click.confirm(f"Delete endpoint {endpoint_name}?"):
        click.echo("Cancelled.")
        return

    try:
        _session(ctx).delete_endpoint(endpoint_name)
    except (ClientError, BotoCoreError, SageKitError) as e:
        _fail(str(e))
        return
    click.echo(click.style(f"Deleted endpoint {endpoint_name}", fg="green"))


@cli.command("image-uri")
@click.argument("framework")
@click.option("--version", "version", default=None, help="Framework or algorithm version")
@click.option("--region", default=None, help="AWS region (defaults to the session region)")
@click.option("--py-version", default=None, help="Python version, e.g. py3")
@click.option("--instance-type", default=None, help="Instance type, selects CPU or GPU images")
@click.option(
    "--scope",
    type=click.Choice(["training", "inference"]),
    default=None,
    help="Image scope",
)
@click.pass_context
def image_uri(
    ctx: click.Context,
    framework: str,
    version: str | None,
    region: str | None,
    py_version: str | None,
    instance_type: str | None,
    scope: str | None,
) -> None:
    """Print the ECR URI of a framework or built-in algorithm image.

    Examples:

        sagekit image-uri kmeans --region us-west-2

        sagekit image-uri pytorch --version 1.8.1 --py-version py36 \\
            --instance-type ml.p3.2xlarge --scope training
    """
    from . import image_uris

    if region is None:
        from .config import config_from_env, load_config

        config_path = ctx.obj.get("config")
        region = (load_config(config_path) if config_path else config_from_env()).aws.region

    try:
        uri = image_uris.retrieve(
            framework,
            region,
            version=version,
            py_version=py_version,
            instance_type=instance_type,
            image_scope=scope,
        )
    except ValueError as e:
        _fail(str(e))
        return
    click.echo(uri)


def main() -> None:
    """Entry point for the ``sagekit`` command."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    cli(obj={})


if __name__ == "__main__":
    main()
