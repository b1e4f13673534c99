"""Tests for processing jobs and the Scikit-learn processor."""

import pytest

from sagekit.exceptions import UnexpectedStatusError
from sagekit.processing import (
    NetworkConfig,
    ProcessingInput,
    ProcessingJob,
    ProcessingOutput,
    Processor,
    ScriptProcessor,
)
from sagekit.sklearn import SKLearnProcessor

ROLE = "arn:aws:iam::123456789012:role/SageMakerRole"
IMAGE = "123456789012.dkr.ecr.us-west-2.amazonaws.com/prep:1"


@pytest.fixture
def processor(session):
    return Processor(
        ROLE,
        IMAGE,
        1,
        "ml.m5.xlarge",
        entrypoint=["python3", "/opt/ml/code/run.py"],
        max_runtime_in_seconds=600,
        volume_kms_key="vol-key",
        output_kms_key="out-key",
        env={"MODE": "fast"},
        network_config=NetworkConfig(subnets=["subnet-1"], security_group_ids=["sg-1"]),
        sagemaker_session=session,
    )


class TestProcessor:
    """Test running a container over S3 data."""

    def test_run_request(self, processor, sagemaker_client):
        """Test the CreateProcessingJob request."""
        processor.run(
            inputs=[ProcessingInput("s3://my-bucket/raw", "/opt/ml/processing/input")],
            outputs=[ProcessingOutput("/opt/ml/processing/output", "s3://my-bucket/clean")],
            arguments=["--split", "0.2"],
            job_name="prep-job",
            wait=False,
            logs=False,
        )

        sagemaker_client.create_processing_job.assert_called_once_with(
            ProcessingJobName="prep-job",
            ProcessingResources={
                "ClusterConfig": {
                    "InstanceType": "ml.m5.xlarge",
                    "InstanceCount": 1,
                    "VolumeSizeInGB": 30,
                    "VolumeKmsKeyId": "vol-key",
                }
            },
            AppSpecification={
                "ImageUri": IMAGE,
                "ContainerArguments": ["--split", "0.2"],
                "ContainerEntrypoint": ["python3", "/opt/ml/code/run.py"],
            },
            RoleArn=ROLE,
            ProcessingInputs=[
                {
                    "InputName": "input-1",
                    "AppManaged": False,
                    "S3Input": {
                        "S3Uri": "s3://my-bucket/raw",
                        "LocalPath": "/opt/ml/processing/input",
                        "S3DataType": "S3Prefix",
                        "S3InputMode": "File",
                        "S3DataDistributionType": "FullyReplicated",
                        "S3CompressionType": "None",
                    },
                }
            ],
            ProcessingOutputConfig={
                "Outputs": [
                    {
                        "OutputName": "output-1",
                        "AppManaged": False,
                        "S3Output": {
                            "S3Uri": "s3://my-bucket/clean",
                            "LocalPath": "/opt/ml/processing/output",
                            "S3UploadMode": "EndOfJob",
                        },
                    }
                ],
                "KmsKeyId": "out-key",
            },
            Environment={"MODE": "fast"},
            NetworkConfig={
                "EnableNetworkIsolation": False,
                "VpcConfig": {"SecurityGroupIds": ["sg-1"], "Subnets": ["subnet-1"]},
            },
            StoppingCondition={"MaxRuntimeInSeconds": 600},
        )
        assert processor.latest_job.job_name == "prep-job"
        assert processor.jobs == [processor.latest_job]

    def test_job_name_from_image(self, session, sagemaker_client):
        """Test that generated job names derive from the image."""
        processor = Processor(ROLE, IMAGE, 1, "ml.m5.xlarge", sagemaker_session=session)
        processor.run(wait=False, logs=False)
        assert processor._current_job_name.startswith("prep-")

    def test_logs_require_wait(self, processor):
        """Test that logs can only be streamed while waiting."""
        with pytest.raises(ValueError, match="Logs can only be shown"):
            processor.run(wait=False, logs=True)

    def test_local_input_uploaded(self, processor, s3_client, tmp_path):
        """Test that local inputs are uploaded under the job's input prefix."""
        data = tmp_path / "data.csv"
        data.write_text("1,2\n")
        file_input = ProcessingInput(str(data), "/opt/ml/processing/input")

        processor.run(inputs=[file_input], job_name="prep-job", wait=False, logs=False)

        assert s3_client.upload_file.call_args.args[1:3] == ("my-bucket", "prep-job/input/input-1/data.csv")
        assert file_input.source == "s3://my-bucket/prep-job/input/input-1/data.csv"

    def test_output_destination_generated(self, processor):
        """Test that outputs without an S3 destination get one under the job."""
        output = ProcessingOutput("/opt/ml/processing/output", output_name="features")
        processor.run(outputs=[output], job_name="prep-job", wait=False, logs=False)
        assert output.destination == "s3://my-bucket/prep-job/output/features"

    def test_rejects_wrong_types(self, processor):
        """Test that inputs and outputs must be the processing types."""
        with pytest.raises(TypeError, match="ProcessingInput"):
            processor.run(inputs=["s3://my-bucket/raw"], wait=False, logs=False)
        with pytest.raises(TypeError, match="ProcessingOutput"):
            processor.run(outputs=["s3://my-bucket/out"], wait=False, logs=False)

    def test_wait_failed(self, processor, sagemaker_client, no_sleep):
        """Test that a failed job raises when waiting without logs."""
        sagemaker_client.describe_processing_job.return_value = {
            "ProcessingJobStatus": "Failed",
            "FailureReason": "AlgorithmError",
        }
        with pytest.raises(UnexpectedStatusError, match="AlgorithmError"):
            processor.run(job_name="prep-job", logs=False)


class TestScriptProcessor:
    """Test processors that run a user script."""

    @pytest.fixture
    def script_processor(self, session):
        return ScriptProcessor(ROLE, IMAGE, ["python3"], 1, "ml.m5.xlarge", sagemaker_session=session)

    def test_local_script(self, script_processor, sagemaker_client, s3_client, tmp_path):
        """Test that the script is uploaded and becomes the entrypoint."""
        script = tmp_path / "preprocess.py"
        script.write_text("print('hi')\n")

        script_processor.run(str(script), job_name="prep-job", wait=False, logs=False)

        assert s3_client.upload_file.call_args.args[1:3] == ("my-bucket", "prep-job/input/code/preprocess.py")
        request = sagemaker_client.create_processing_job.call_args.kwargs
        assert request["AppSpecification"]["ContainerEntrypoint"] == [
            "python3",
            "/opt/ml/processing/input/code/preprocess.py",
        ]
        code_input = request["ProcessingInputs"][-1]
        assert code_input["InputName"] == "code"
        assert code_input["S3Input"]["S3Uri"] == "s3://my-bucket/prep-job/input/code/preprocess.py"
        assert code_input["S3Input"]["LocalPath"] == "/opt/ml/processing/input/code"

    def test_s3_script(self, script_processor, sagemaker_client, s3_client):
        """Test that an S3 script is used as is."""
        script_processor.run("s3://my-bucket/code/run.py", job_name="prep-job", wait=False, logs=False)
        s3_client.upload_file.assert_not_called()
        request = sagemaker_client.create_processing_job.call_args.kwargs
        assert request["ProcessingInputs"][0]["S3Input"]["S3Uri"] == "s3://my-bucket/code/run.py"

    def test_invalid_code(self, script_processor, tmp_path):
        """Test missing files, directories and unknown schemes."""
        with pytest.raises(ValueError, match="wasn't found"):
            script_processor.run(str(tmp_path / "missing.py"), wait=False, logs=False)
        with pytest.raises(ValueError, match="must be a file"):
            script_processor.run(str(tmp_path), wait=False, logs=False)
        with pytest.raises(ValueError, match="not recognized"):
            script_processor.run("https://example.com/run.py", wait=False, logs=False)


class TestProcessingJob:
    """Test job handles rebuilt from descriptions."""

    def test_from_processing_arn(self, session, sagemaker_client):
        """Test rebuilding inputs, outputs and the output key."""
        sagemaker_client.describe_processing_job.return_value = {
            "ProcessingJobName": "prep-job",
            "ProcessingInputs": [
                {
                    "InputName": "input-1",
                    "S3Input": {
                        "S3Uri": "s3://my-bucket/raw",
                        "LocalPath": "/opt/ml/processing/input",
                        "S3DataType": "S3Prefix",
                        "S3InputMode": "File",
                        "S3DataDistributionType": "FullyReplicated",
                    },
                }
            ],
            "ProcessingOutputConfig": {
                "Outputs": [
                    {
                        "OutputName": "output-1",
                        "S3Output": {
                            "S3Uri": "s3://my-bucket/clean",
                            "LocalPath": "/opt/ml/processing/output",
                            "S3UploadMode": "EndOfJob",
                        },
                    }
                ],
                "KmsKeyId": "out-key",
            },
        }

        job = ProcessingJob.from_processing_arn(
            session, "arn:aws:sagemaker:us-west-2:123456789012:processing-job/prep-job"
        )

        sagemaker_client.describe_processing_job.assert_called_once_with(ProcessingJobName="prep-job")
        assert job.job_name == "prep-job"
        assert job.inputs[0].source == "s3://my-bucket/raw"
        assert job.inputs[0].s3_compression_type == "None"
        assert job.outputs[0].destination == "s3://my-bucket/clean"
        assert job.output_kms_key == "out-key"

    def test_stop(self, session, sagemaker_client):
        """Test stopping the job."""
        ProcessingJob(session, "prep-job", None, None).stop()
        sagemaker_client.stop_processing_job.assert_called_once_with(ProcessingJobName="prep-job")


class TestNetworkConfig:
    """Test network settings requests."""

    def test_minimal(self):
        """Test that only isolation is sent by default."""
        assert NetworkConfig()._to_request_dict() == {"EnableNetworkIsolation": False}

    def test_encryption(self):
        """Test inter-container traffic encryption."""
        request = NetworkConfig(True, encrypt_inter_container_traffic=True)._to_request_dict()
        assert request == {"EnableNetworkIsolation": True, "EnableInterContainerTrafficEncryption": True}


class TestSKLearnProcessor:
    """Test the Scikit-learn processor."""

    def test_image_and_command(self, session):
        """Test the resolved image and the default command."""
        processor = SKLearnProcessor("0.23-1", ROLE, "ml.m5.xlarge", 1, sagemaker_session=session)
        assert processor.image_uri == (
            "246618743249.dkr.ecr.us-west-2.amazonaws.com/sagemaker-scikit-learn:0.23-1-cpu-py3"
        )
        assert processor.command == ["python3"]
        assert processor.framework_version == "0.23-1"
