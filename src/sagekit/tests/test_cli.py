"""Tests for the sagekit command-line interface."""

from botocore.exceptions import ClientError
from click.testing import CliRunner
import pytest

from sagekit.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, session):
    """Invoke the CLI with the mocked session already in the context."""

    def _invoke(*args, **kwargs):
        return runner.invoke(cli, list(args), obj={"session": session}, **kwargs)

    return _invoke


class TestStatus:
    """Test the status command."""

    def test_training_job(self, invoke, sagemaker_client):
        """Test status, failure reason, resources and billing."""
        sagemaker_client.describe_training_job.return_value = {
            "TrainingJobStatus": "Failed",
            "SecondaryStatus": "Failed",
            "FailureReason": "AlgorithmError: out of memory",
            "ResourceConfig": {"InstanceType": "ml.m5.xlarge", "InstanceCount": 2},
            "BillableTimeInSeconds": 120,
        }

        result = invoke("status", "my-job")

        assert result.exit_code == 0
        sagemaker_client.describe_training_job.assert_called_once_with(TrainingJobName="my-job")
        assert "Status: Failed (Failed)" in result.output
        assert "Failure: AlgorithmError: out of memory" in result.output
        assert "Type: ml.m5.xlarge" in result.output
        assert "Count: 2" in result.output
        assert "Billable: 2.0 minutes" in result.output

    def test_processing_job(self, invoke, sagemaker_client):
        """Test that processing resources come from the cluster config."""
        sagemaker_client.describe_processing_job.return_value = {
            "ProcessingJobStatus": "Completed",
            "ProcessingResources": {"ClusterConfig": {"InstanceType": "ml.c5.xlarge", "InstanceCount": 1}},
        }

        result = invoke("status", "etl-job", "--type", "processing")

        assert result.exit_code == 0
        sagemaker_client.describe_processing_job.assert_called_once_with(ProcessingJobName="etl-job")
        assert "Status: Completed" in result.output
        assert "Type: ml.c5.xlarge" in result.output

    def test_client_error(self, invoke, sagemaker_client):
        """Test that AWS errors exit with status 1."""
        sagemaker_client.describe_training_job.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "Requested resource not found"}},
            "DescribeTrainingJob",
        )

        result = invoke("status", "missing-job")

        assert result.exit_code == 1
        assert "Requested resource not found" in result.output


class TestList:
    """Test listing jobs."""

    def test_list_jobs(self, invoke, sagemaker_client):
        """Test the list request and one line per job."""
        sagemaker_client.list_transform_jobs.return_value = {
            "TransformJobSummaries": [
                {"TransformJobName": "batch-2", "TransformJobStatus": "InProgress"},
                {"TransformJobName": "batch-1", "TransformJobStatus": "Completed"},
            ]
        }

        result = invoke("list", "--type", "transform", "--name-contains", "batch", "--limit", "5")

        assert result.exit_code == 0
        sagemaker_client.list_transform_jobs.assert_called_once_with(
            SortBy="CreationTime", SortOrder="Descending", MaxResults=5, NameContains="batch"
        )
        assert "batch-2" in result.output
        assert "batch-1" in result.output

    def test_no_jobs(self, invoke, sagemaker_client):
        """Test the message when nothing matches."""
        sagemaker_client.list_training_jobs.return_value = {"TrainingJobSummaries": []}
        result = invoke("list")
        assert "No training jobs found." in result.output


class TestStop:
    """Test stopping jobs."""

    def test_stop_with_yes(self, invoke, sagemaker_client):
        """Test stopping without a prompt."""
        result = invoke("stop", "my-job", "--yes")
        assert result.exit_code == 0
        sagemaker_client.stop_training_job.assert_called_once_with(TrainingJobName="my-job")
        assert "Stop requested for my-job" in result.output

    def test_stop_tuning_job(self, invoke, sagemaker_client):
        """Test stopping a tuning job."""
        invoke("stop", "tune-job", "--type", "tuning", "-y")
        sagemaker_client.stop_hyper_parameter_tuning_job.assert_called_once_with(
            HyperParameterTuningJobName="tune-job"
        )

    def test_stop_cancelled(self, invoke, sagemaker_client):
        """Test that declining the prompt leaves the job running."""
        result = invoke("stop", "my-job", input="n\n")
        assert "Cancelled." in result.output
        sagemaker_client.stop_training_job.assert_not_called()


class TestLogs:
    """Test printing job logs."""

    def test_logs(self, invoke, session, monkeypatch):
        """Test that the matching session log reader is used."""
        calls = []
        monkeypatch.setattr(session, "logs_for_processing_job", lambda name, wait: calls.append((name, wait)))

        result = invoke("logs", "etl-job", "--type", "processing", "--wait")

        assert result.exit_code == 0
        assert calls == [("etl-job", True)]


class TestEndpoints:
    """Test endpoint commands."""

    def test_list_endpoints(self, invoke, sagemaker_client):
        """Test listing endpoints with their status."""
        sagemaker_client.list_endpoints.return_value = {
            "Endpoints": [{"EndpointName": "my-endpoint", "EndpointStatus": "InService"}]
        }
        result = invoke("endpoints", "--limit", "3")
        assert result.exit_code == 0
        sagemaker_client.list_endpoints.assert_called_once_with(
            SortBy="CreationTime", SortOrder="Descending", MaxResults=3
        )
        assert "my-endpoint" in result.output
        assert "InService" in result.output

    def test_no_endpoints(self, invoke, sagemaker_client):
        """Test the message when there are no endpoints."""
        sagemaker_client.list_endpoints.return_value = {"Endpoints": []}
        assert "No endpoints found." in invoke("endpoints").output

    def test_delete_endpoint(self, invoke, sagemaker_client):
        """Test deleting an endpoint."""
        result = invoke("delete-endpoint", "my-endpoint", "--yes")
        assert result.exit_code == 0
        sagemaker_client.delete_endpoint.assert_called_once_with(EndpointName="my-endpoint")


class TestImageUri:
    """Test the image-uri command."""

    def test_region_from_environment(self, runner):
        """Test that the region defaults to the environment."""
        result = runner.invoke(cli, ["image-uri", "kmeans"], obj={})
        assert result.exit_code == 0
        assert result.output.strip() == "174872318107.dkr.ecr.us-west-2.amazonaws.com/kmeans:1"

    def test_region_from_config(self, runner, tmp_path):
        """Test that the region comes from the configuration file."""
        config = tmp_path / "sagekit.yaml"
        config.write_text("sagekit:\n  aws:\n    region: us-east-1\n")

        result = runner.invoke(cli, ["--config", str(config), "image-uri", "kmeans"], obj={})

        assert result.exit_code == 0
        assert result.output.strip().endswith(".dkr.ecr.us-east-1.amazonaws.com/kmeans:1")

    def test_framework_image(self, runner):
        """Test options selecting a GPU training image."""
        result = runner.invoke(
            cli,
            [
                "image-uri",
                "pytorch",
                "--version",
                "1.8.1",
                "--py-version",
                "py36",
                "--instance-type",
                "ml.p3.2xlarge",
                "--scope",
                "training",
                "--region",
                "us-west-2",
            ],
            obj={},
        )
        assert result.output.strip() == "763104351884.dkr.ecr.us-west-2.amazonaws.com/pytorch-training:1.8.1-gpu-py36"

    def test_unknown_framework(self, runner):
        """Test that lookup errors exit with status 1."""
        result = runner.invoke(cli, ["image-uri", "caffe", "--region", "us-west-2"], obj={})
        assert result.exit_code == 1
        assert "Unsupported framework: caffe" in result.output
