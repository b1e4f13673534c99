"""Tests for batch transform jobs."""

import pytest

from sagekit.exceptions import UnexpectedStatusError
from sagekit.transformer import Transformer


@pytest.fixture
def transformer(session):
    return Transformer(
        "my-model",
        2,
        "ml.m5.large",
        strategy="MultiRecord",
        assemble_with="Line",
        accept="text/csv",
        max_payload=6,
        sagemaker_session=session,
    )


def transform_job_description(**extra):
    desc = {
        "TransformJobName": "batch-job",
        "ModelName": "my-model",
        "TransformJobStatus": "Completed",
        "TransformResources": {"InstanceCount": 1, "InstanceType": "ml.m5.large"},
        "TransformOutput": {"S3OutputPath": "s3://my-bucket/out", "AssembleWith": "Line"},
        "BatchStrategy": "SingleRecord",
        "MaxPayloadInMB": 6,
    }
    desc.update(extra)
    return desc


class TestTransform:
    """Test starting transform jobs."""

    def test_transform_request(self, transformer, sagemaker_client):
        """Test the CreateTransformJob request."""
        transformer.transform(
            "s3://my-bucket/batch",
            content_type="text/csv",
            split_type="Line",
            job_name="batch-job",
            input_filter="$[1:]",
            join_source="Input",
            model_client_config={"InvocationsMaxRetries": 1},
            wait=False,
        )

        sagemaker_client.create_transform_job.assert_called_once_with(
            TransformJobName="batch-job",
            ModelName="my-model",
            TransformInput={
                "DataSource": {"S3DataSource": {"S3DataType": "S3Prefix", "S3Uri": "s3://my-bucket/batch"}},
                "ContentType": "text/csv",
                "SplitType": "Line",
            },
            TransformOutput={
                "S3OutputPath": "s3://my-bucket/batch-job",
                "Accept": "text/csv",
                "AssembleWith": "Line",
            },
            TransformResources={"InstanceCount": 2, "InstanceType": "ml.m5.large"},
            BatchStrategy="MultiRecord",
            MaxPayloadInMB=6,
            DataProcessing={"InputFilter": "$[1:]", "JoinSource": "Input"},
            ModelClientConfig={"InvocationsMaxRetries": 1},
        )

    def test_job_name_from_model_image(self, transformer, sagemaker_client):
        """Test that job names derive from the model's image."""
        sagemaker_client.describe_model.return_value = {
            "PrimaryContainer": {"Image": "123456789012.dkr.ecr.us-west-2.amazonaws.com/scorer:1"}
        }
        transformer.transform("s3://my-bucket/batch", wait=False)
        assert transformer._current_job_name.startswith("scorer-")

    def test_generated_output_path_follows_job(self, transformer, sagemaker_client):
        """Test that a generated output path is regenerated for each job."""
        transformer.transform("s3://my-bucket/batch", job_name="first", wait=False)
        transformer.transform("s3://my-bucket/batch", job_name="second", wait=False)
        assert transformer.output_path == "s3://my-bucket/second"

    def test_wait_failed(self, transformer, sagemaker_client, no_sleep):
        """Test that a failed job raises when waiting."""
        sagemaker_client.describe_transform_job.return_value = transform_job_description(
            TransformJobStatus="Failed", FailureReason="bad input"
        )
        with pytest.raises(UnexpectedStatusError, match="bad input"):
            transformer.transform("s3://my-bucket/batch", job_name="batch-job", logs=False)

    def test_stop_without_job(self, transformer):
        """Test that stopping needs a job."""
        with pytest.raises(ValueError, match="No transform job available"):
            transformer.stop_transform_job()


class TestAttach:
    """Test attaching to existing transform jobs."""

    def test_attach(self, session, sagemaker_client):
        """Test rebuilding a transformer from a job description."""
        sagemaker_client.describe_transform_job.return_value = transform_job_description(
            Environment={"A": "1"}
        )
        transformer = Transformer.attach("batch-job", sagemaker_session=session)

        assert transformer.model_name == "my-model"
        assert transformer.instance_count == 1
        assert transformer.strategy == "SingleRecord"
        assert transformer.assemble_with == "Line"
        assert transformer.output_path == "s3://my-bucket/out"
        assert transformer.env == {"A": "1"}
        assert transformer.latest_transform_job.name == "batch-job"

    def test_stop_attached_job(self, session, sagemaker_client, no_sleep):
        """Test stopping an attached job and waiting until it stops."""
        sagemaker_client.describe_transform_job.return_value = transform_job_description(
            TransformJobStatus="Stopped"
        )
        transformer = Transformer.attach("batch-job", sagemaker_session=session)
        transformer.stop_transform_job()
        sagemaker_client.stop_transform_job.assert_called_once_with(TransformJobName="batch-job")
