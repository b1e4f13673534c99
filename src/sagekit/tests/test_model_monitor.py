"""Tests for data capture, baselining and monitoring schedules."""

import io
import json

from botocore.exceptions import ClientError
import pytest

from sagekit.exceptions import UnexpectedStatusError, WaitTimeoutError
from sagekit.model_monitor import (
    Constraints,
    CronExpressionGenerator,
    DataCaptureConfig,
    DatasetFormat,
    DefaultModelMonitor,
    EndpointInput,
    ModelMonitor,
    MonitoringOutput,
    NetworkConfig,
    Statistics,
)
from sagekit.processing import ProcessingInput

ROLE = "arn:aws:iam::123456789012:role/SageMakerRole"
DEFAULT_IMAGE = "159807026194.dkr.ecr.us-west-2.amazonaws.com/sagemaker-model-monitor-analyzer"
CUSTOM_IMAGE = "123456789012.dkr.ecr.us-west-2.amazonaws.com/drift:1"
OUTPUT_PATH = "/opt/ml/processing/output"
ENDPOINT_INPUT = {
    "EndpointInput": {
        "EndpointName": "endpoint",
        "LocalPath": "/opt/ml/processing/input/endpoint",
        "S3InputMode": "File",
        "S3DataDistributionType": "FullyReplicated",
    }
}


@pytest.fixture
def monitor(session):
    return DefaultModelMonitor(ROLE, sagemaker_session=session)


@pytest.fixture
def s3_json(s3_client):
    """Every S3 read returns a small JSON document."""
    s3_client.get_object.side_effect = lambda **kwargs: {"Body": io.BytesIO(b'{"version": 0.0}')}
    return s3_client


def schedule_description(status="Scheduled"):
    return {
        "MonitoringScheduleArn": "arn:aws:sagemaker:us-west-2:123456789012:monitoring-schedule/my-schedule",
        "MonitoringScheduleName": "my-schedule",
        "MonitoringScheduleStatus": status,
        "MonitoringScheduleConfig": {
            "ScheduleConfig": {"ScheduleExpression": "cron(0 * ? * * *)"},
            "MonitoringJobDefinition": {
                "MonitoringInputs": [ENDPOINT_INPUT],
                "MonitoringOutputConfig": {
                    "MonitoringOutputs": [
                        {
                            "S3Output": {
                                "S3Uri": "s3://my-bucket/results",
                                "LocalPath": OUTPUT_PATH,
                                "S3UploadMode": "Continuous",
                            }
                        }
                    ],
                    "KmsKeyId": "out-key",
                },
                "MonitoringResources": {
                    "ClusterConfig": {"InstanceCount": 1, "InstanceType": "ml.m5.xlarge", "VolumeSizeInGB": 30}
                },
                "MonitoringAppSpecification": {"ImageUri": DEFAULT_IMAGE},
                "StoppingCondition": {"MaxRuntimeInSeconds": 1800},
                "Environment": {"output_path": OUTPUT_PATH, "publish_cloudwatch_metrics": "Enabled"},
                "NetworkConfig": {
                    "EnableNetworkIsolation": True,
                    "VpcConfig": {"SecurityGroupIds": ["sg-1"], "Subnets": ["subnet-1"]},
                },
                "RoleArn": ROLE,
            },
        },
    }


class TestHelpers:
    """Test capture settings, dataset formats and cron expressions."""

    def test_data_capture_config(self, session):
        """Test the endpoint configuration request."""
        config = DataCaptureConfig(
            True,
            sampling_percentage=100,
            destination_s3_uri="s3://capture/bucket",
            kms_key_id="key",
            capture_options=["REQUEST"],
        )
        assert config._to_request_dict() == {
            "EnableCapture": True,
            "InitialSamplingPercentage": 100,
            "DestinationS3Uri": "s3://capture/bucket",
            "CaptureOptions": [{"CaptureMode": "Input"}],
            "KmsKeyId": "key",
            "CaptureContentTypeHeader": {
                "CsvContentTypes": ["text/csv"],
                "JsonContentTypes": ["application/json"],
            },
        }

    def test_dataset_format(self):
        """Test analyzer dataset formats."""
        assert DatasetFormat.csv(header=False) == {"csv": {"header": False, "output_columns_position": "START"}}
        assert DatasetFormat.json() == {"json": {"lines": True}}
        assert DatasetFormat.sagemaker_capture_json() == {"sagemakerCaptureJson": {}}
        with pytest.raises(ValueError, match="START or END"):
            DatasetFormat.csv(output_columns_position="MIDDLE")

    def test_cron_expressions(self):
        """Test schedule expressions."""
        assert CronExpressionGenerator.hourly() == "cron(0 * ? * * *)"
        assert CronExpressionGenerator.daily(6) == "cron(0 6 ? * * *)"
        assert CronExpressionGenerator.daily_every_x_hours(4, starting_hour=2) == "cron(0 2/4 ? * * *)"

    def test_endpoint_input_optional_fields(self):
        """Test that only set attributes are sent."""
        endpoint_input = EndpointInput("endpoint", "/opt/ml/processing/input/endpoint", start_time_offset="-PT1H")
        assert endpoint_input._to_request_dict()["EndpointInput"]["StartTimeOffset"] == "-PT1H"
        assert "EndTimeOffset" not in endpoint_input._to_request_dict()["EndpointInput"]


class TestMonitoringFiles:
    """Test reading and writing monitoring JSON files."""

    def test_from_s3_uri(self, session, s3_json):
        """Test reading a file from S3."""
        statistics = Statistics.from_s3_uri("s3://my-bucket/results/statistics.json", sagemaker_session=session)
        assert statistics.body_dict == {"version": 0.0}
        s3_json.get_object.assert_called_once_with(Bucket="my-bucket", Key="results/statistics.json")

    def test_from_string(self, session, s3_json):
        """Test uploading a JSON string under the default bucket."""
        constraints = Constraints.from_string('{"features": []}', sagemaker_session=session)
        put = s3_json.put_object.call_args.kwargs
        assert put["Bucket"] == "my-bucket"
        assert put["Key"].startswith("monitoring/")
        assert put["Key"].endswith("/constraints.json")
        assert constraints.file_s3_uri == f"s3://my-bucket/{put['Key']}"

    def test_missing_file(self, session, s3_client):
        """Test that read failures propagate."""
        s3_client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        with pytest.raises(ClientError):
            Statistics.from_s3_uri("s3://my-bucket/missing.json", sagemaker_session=session)

    def test_set_monitoring_and_save(self, session, s3_client):
        """Test toggling constraint evaluation and saving with a KMS key."""
        constraints = Constraints(
            {"features": [{"name": "age"}, {"name": "income"}]},
            "s3://my-bucket/constraints.json",
            kms_key="key",
            sagemaker_session=session,
        )
        constraints.set_monitoring(False)
        constraints.set_monitoring(True, feature_name="age")

        assert constraints.body_dict["monitoring_config"] == {"evaluate_constraints": "Disabled"}
        overrides = constraints.body_dict["features"][0]["string_constraints"]["monitoring_config_overrides"]
        assert overrides == {"evaluate_constraints": "Enabled"}
        assert "string_constraints" not in constraints.body_dict["features"][1]

        assert constraints.save("s3://my-bucket/new/constraints.json") == "s3://my-bucket/new/constraints.json"
        put = s3_client.put_object.call_args.kwargs
        assert put["Key"] == "new/constraints.json"
        assert put["SSEKMSKeyId"] == "key"
        assert json.loads(put["Body"])["monitoring_config"] == {"evaluate_constraints": "Disabled"}


class TestBaselining:
    """Test baselining jobs of the built-in analyzer."""

    def test_default_image(self, monitor):
        """Test that the analyzer image is resolved for the region."""
        assert monitor.image_uri == DEFAULT_IMAGE
        assert DefaultModelMonitor.is_default_image(DEFAULT_IMAGE)
        assert not DefaultModelMonitor.is_default_image(CUSTOM_IMAGE)

    def test_suggest_baseline_request(self, monitor, sagemaker_client):
        """Test the processing job that suggests a baseline."""
        job = monitor.suggest_baseline(
            "s3://my-bucket/train.csv",
            DatasetFormat.csv(),
            job_name="baseline-job",
            wait=False,
            logs=False,
        )

        request = sagemaker_client.create_processing_job.call_args.kwargs
        assert request["ProcessingJobName"] == "baseline-job"
        assert request["AppSpecification"] == {"ImageUri": DEFAULT_IMAGE}
        dataset_input = request["ProcessingInputs"][0]
        assert dataset_input["InputName"] == "baseline_dataset_input"
        assert dataset_input["S3Input"]["S3Uri"] == "s3://my-bucket/train.csv"
        assert dataset_input["S3Input"]["LocalPath"] == "/opt/ml/processing/input/baseline_dataset_input"
        output = request["ProcessingOutputConfig"]["Outputs"][0]
        assert output["OutputName"] == "monitoring_output"
        assert output["S3Output"]["S3Uri"] == "s3://my-bucket/model-monitor/baselining/baseline-job/results"
        assert output["S3Output"]["LocalPath"] == OUTPUT_PATH
        assert request["Environment"] == {
            "output_path": OUTPUT_PATH,
            "publish_cloudwatch_metrics": "Disabled",
            "dataset_format": json.dumps({"csv": {"header": True, "output_columns_position": "START"}}),
            "dataset_source": "/opt/ml/processing/input/baseline_dataset_input",
        }
        assert job.job_name == "baseline-job"
        assert monitor.latest_baselining_job is job

    def test_generated_job_name(self, monitor):
        """Test the default baselining job name."""
        monitor.suggest_baseline("s3://my-bucket/train.csv", DatasetFormat.json(), wait=False, logs=False)
        assert monitor.latest_baselining_job_name.startswith("baseline-suggestion-job-")

    def test_local_script_uploaded(self, monitor, sagemaker_client, s3_client, tmp_path):
        """Test uploading a record preprocessor script."""
        script = tmp_path / "preprocess.py"
        script.write_text("def preprocess_handler(record):\n    return record\n")

        monitor.suggest_baseline(
            "s3://my-bucket/train.csv",
            DatasetFormat.csv(),
            record_preprocessor_script=str(script),
            job_name="baseline-job",
            wait=False,
            logs=False,
        )

        assert s3_client.upload_file.call_args.args[1:3] == (
            "my-bucket",
            "model-monitor/baselining/baseline-job/input/record_preprocessor_script_input/preprocess.py",
        )
        env = sagemaker_client.create_processing_job.call_args.kwargs["Environment"]
        assert env["record_preprocessor_script"] == (
            "/opt/ml/processing/input/record_preprocessor_script_input/preprocess.py"
        )

    def test_baseline_files(self, monitor, s3_json):
        """Test reading the files produced by the latest baselining job."""
        monitor.suggest_baseline(
            "s3://my-bucket/train.csv", DatasetFormat.csv(), job_name="baseline-job", wait=False, logs=False
        )

        statistics = monitor.baseline_statistics()
        constraints = monitor.suggested_constraints()

        assert statistics.file_s3_uri == "s3://my-bucket/model-monitor/baselining/baseline-job/results/statistics.json"
        assert constraints.file_s3_uri.endswith("/results/constraints.json")

    def test_baseline_files_before_completion(self, monitor, s3_client, sagemaker_client):
        """Test that a missing file of an unfinished job reports the job status."""
        monitor.suggest_baseline(
            "s3://my-bucket/train.csv", DatasetFormat.csv(), job_name="baseline-job", wait=False, logs=False
        )
        s3_client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        sagemaker_client.describe_processing_job.return_value = {"ProcessingJobStatus": "InProgress"}

        with pytest.raises(UnexpectedStatusError, match="not in 'Completed' state"):
            monitor.baseline_statistics()

    def test_baseline_files_need_a_job(self, monitor):
        """Test that baseline files need a baselining job."""
        with pytest.raises(ValueError, match="No suggestion jobs"):
            monitor.baseline_statistics()

    def test_custom_run_baseline(self, session, sagemaker_client):
        """Test a baselining job of a custom monitoring image."""
        monitor = ModelMonitor(ROLE, CUSTOM_IMAGE, entrypoint=["python3", "drift.py"], sagemaker_session=session)
        monitor.run_baseline(
            [ProcessingInput("s3://my-bucket/train.csv", "/opt/ml/processing/input/data")],
            OUTPUT_PATH,
            job_name="drift-baseline",
            wait=False,
            logs=False,
        )

        request = sagemaker_client.create_processing_job.call_args.kwargs
        assert request["AppSpecification"]["ContainerEntrypoint"] == ["python3", "drift.py"]
        output = request["ProcessingOutputConfig"]["Outputs"][0]
        assert output["S3Output"]["S3Uri"] == "s3://my-bucket/drift-baseline/output"
        assert request["ProcessingInputs"][0]["InputName"] == "input-1"


class TestSchedules:
    """Test creating and managing monitoring schedules."""

    def test_create_with_latest_baseline(self, monitor, sagemaker_client, s3_json):
        """Test that the latest baseline backs the schedule."""
        monitor.suggest_baseline(
            "s3://my-bucket/train.csv", DatasetFormat.csv(), job_name="baseline-job", wait=False, logs=False
        )
        monitor.create_monitoring_schedule(
            "endpoint",
            monitor_schedule_name="my-schedule",
            schedule_cron_expression=CronExpressionGenerator.hourly(),
        )

        request = sagemaker_client.create_monitoring_schedule.call_args.kwargs
        assert request["MonitoringScheduleName"] == "my-schedule"
        config = request["MonitoringScheduleConfig"]
        assert config["ScheduleConfig"] == {"ScheduleExpression": "cron(0 * ? * * *)"}
        definition = config["MonitoringJobDefinition"]
        results = "s3://my-bucket/model-monitor/baselining/baseline-job/results"
        assert definition["BaselineConfig"] == {
            "StatisticsResource": {"S3Uri": f"{results}/statistics.json"},
            "ConstraintsResource": {"S3Uri": f"{results}/constraints.json"},
        }
        assert definition["MonitoringInputs"] == [ENDPOINT_INPUT]
        assert definition["MonitoringOutputConfig"] == {
            "MonitoringOutputs": [
                {
                    "S3Output": {
                        "S3Uri": "s3://my-bucket/model-monitor/monitoring/my-schedule/results",
                        "LocalPath": OUTPUT_PATH,
                        "S3UploadMode": "Continuous",
                    }
                }
            ]
        }
        assert definition["Environment"] == {"output_path": OUTPUT_PATH, "publish_cloudwatch_metrics": "Enabled"}
        assert definition["RoleArn"] == ROLE

    def test_one_schedule_per_monitor(self, monitor):
        """Test that a monitor holds a single schedule."""
        monitor.create_monitoring_schedule("endpoint", monitor_schedule_name="my-schedule")
        with pytest.raises(ValueError, match="already used"):
            monitor.create_monitoring_schedule("endpoint")

    def test_generated_schedule_name(self, monitor, sagemaker_client):
        """Test the default schedule name and the absence of a baseline."""
        monitor.create_monitoring_schedule("endpoint")
        request = sagemaker_client.create_monitoring_schedule.call_args.kwargs
        assert request["MonitoringScheduleName"].startswith("monitoring-schedule-")
        assert "BaselineConfig" not in request["MonitoringScheduleConfig"]["MonitoringJobDefinition"]

    def test_rejects_traffic_encryption(self, session):
        """Test that inter-container traffic encryption is refused."""
        monitor = DefaultModelMonitor(
            ROLE,
            network_config=NetworkConfig(encrypt_inter_container_traffic=True),
            sagemaker_session=session,
        )
        with pytest.raises(ValueError, match="not supported in Model Monitor"):
            monitor.create_monitoring_schedule("endpoint", monitor_schedule_name="my-schedule")

    def test_custom_monitor_schedule(self, session, sagemaker_client, s3_json):
        """Test a schedule of a custom image with explicit baseline files."""
        monitor = ModelMonitor(ROLE, CUSTOM_IMAGE, output_kms_key="out-key", sagemaker_session=session)
        monitor.create_monitoring_schedule(
            "endpoint",
            MonitoringOutput(OUTPUT_PATH),
            statistics="s3://my-bucket/baseline/statistics.json",
            monitor_schedule_name="my-schedule",
        )

        definition = sagemaker_client.create_monitoring_schedule.call_args.kwargs["MonitoringScheduleConfig"][
            "MonitoringJobDefinition"
        ]
        assert definition["BaselineConfig"] == {
            "StatisticsResource": {"S3Uri": "s3://my-bucket/baseline/statistics.json"}
        }
        output_config = definition["MonitoringOutputConfig"]
        assert output_config["KmsKeyId"] == "out-key"
        assert output_config["MonitoringOutputs"][0]["S3Output"]["S3Uri"] == "s3://my-bucket/my-schedule/output"

    def test_start_waits_for_pending(self, monitor, sagemaker_client, no_sleep):
        """Test that starting waits until the schedule leaves Pending."""
        monitor.monitoring_schedule_name = "my-schedule"
        sagemaker_client.describe_monitoring_schedule.side_effect = [
            schedule_description("Pending"),
            schedule_description("Scheduled"),
        ]

        monitor.start_monitoring_schedule()

        sagemaker_client.start_monitoring_schedule.assert_called_once_with(MonitoringScheduleName="my-schedule")
        assert sagemaker_client.describe_monitoring_schedule.call_count == 2

    def test_wait_times_out(self, monitor, sagemaker_client, no_sleep):
        """Test that a schedule stuck in Pending times out."""
        monitor.monitoring_schedule_name = "my-schedule"
        sagemaker_client.describe_monitoring_schedule.return_value = schedule_description("Pending")
        with pytest.raises(WaitTimeoutError, match="Pending"):
            monitor.stop_monitoring_schedule()
        assert sagemaker_client.describe_monitoring_schedule.call_count == 36

    def test_delete(self, monitor, sagemaker_client):
        """Test that deleting frees the monitor for a new schedule."""
        monitor.monitoring_schedule_name = "my-schedule"
        monitor.delete_monitoring_schedule()
        sagemaker_client.delete_monitoring_schedule.assert_called_once_with(MonitoringScheduleName="my-schedule")
        with pytest.raises(ValueError, match="create a monitoring schedule first"):
            monitor.describe_schedule()

    def test_update(self, session, sagemaker_client, no_sleep):
        """Test that unset fields keep the values of the existing schedule."""
        sagemaker_client.describe_monitoring_schedule.return_value = schedule_description()
        sagemaker_client.list_tags.return_value = {"Tags": []}
        monitor = DefaultModelMonitor.attach("my-schedule", sagemaker_session=session)

        monitor.update_monitoring_schedule(
            schedule_cron_expression=CronExpressionGenerator.daily(),
            instance_count=2,
            enable_cloudwatch_metrics=False,
        )

        request = sagemaker_client.update_monitoring_schedule.call_args.kwargs
        assert request["MonitoringScheduleName"] == "my-schedule"
        config = request["MonitoringScheduleConfig"]
        assert config["ScheduleConfig"] == {"ScheduleExpression": "cron(0 0 ? * * *)"}
        definition = config["MonitoringJobDefinition"]
        assert definition["MonitoringResources"]["ClusterConfig"] == {
            "InstanceCount": 2,
            "InstanceType": "ml.m5.xlarge",
            "VolumeSizeInGB": 30,
        }
        assert definition["Environment"] == {"output_path": OUTPUT_PATH, "publish_cloudwatch_metrics": "Disabled"}
        assert definition["StoppingCondition"] == {"MaxRuntimeInSeconds": 1800}
        assert definition["MonitoringOutputConfig"]["KmsKeyId"] == "out-key"
        assert monitor.instance_count == 2

    @pytest.mark.parametrize("monitor_class", [ModelMonitor, DefaultModelMonitor])
    def test_update_output_kms_key(self, monitor_class, session, sagemaker_client, no_sleep):
        """Test that a new output KMS key is sent with the current outputs."""
        sagemaker_client.describe_monitoring_schedule.return_value = schedule_description()
        sagemaker_client.list_tags.return_value = {"Tags": []}
        monitor = monitor_class.attach("my-schedule", sagemaker_session=session)

        monitor.update_monitoring_schedule(output_kms_key="new-key")

        request = sagemaker_client.update_monitoring_schedule.call_args.kwargs
        output_config = request["MonitoringScheduleConfig"]["MonitoringJobDefinition"]["MonitoringOutputConfig"]
        assert output_config["KmsKeyId"] == "new-key"
        assert output_config["MonitoringOutputs"][0]["S3Output"]["S3Uri"] == "s3://my-bucket/results"
        assert monitor.output_kms_key == "new-key"

    def test_update_requires_schedule(self, monitor):
        """Test that updating needs a schedule."""
        with pytest.raises(ValueError, match="create a monitoring schedule first"):
            monitor.update_monitoring_schedule(instance_count=2)


class TestAttachAndExecutions:
    """Test attaching to schedules and reading their executions."""

    def test_attach_custom(self, session, sagemaker_client):
        """Test rebuilding a custom monitor from a schedule."""
        sagemaker_client.describe_monitoring_schedule.return_value = schedule_description()
        sagemaker_client.list_tags.return_value = {"Tags": [{"Key": "team", "Value": "ml"}]}

        monitor = ModelMonitor.attach("my-schedule", sagemaker_session=session)

        assert monitor.monitoring_schedule_name == "my-schedule"
        assert monitor.image_uri == DEFAULT_IMAGE
        assert monitor.output_kms_key == "out-key"
        assert monitor.max_runtime_in_seconds == 1800
        assert monitor.network_config.enable_network_isolation is True
        assert monitor.network_config.subnets == ["subnet-1"]
        assert monitor.tags == [{"Key": "team", "Value": "ml"}]

    def test_list_executions_oldest_first(self, monitor, sagemaker_client, s3_json):
        """Test that executions are returned oldest first."""
        monitor.monitoring_schedule_name = "my-schedule"
        sagemaker_client.list_monitoring_executions.return_value = {
            "MonitoringExecutionSummaries": [
                {"ProcessingJobArn": "arn:aws:sagemaker:us-west-2:123456789012:processing-job/newer"},
                {"MonitoringExecutionStatus": "Failed"},
                {"ProcessingJobArn": "arn:aws:sagemaker:us-west-2:123456789012:processing-job/older"},
            ]
        }
        sagemaker_client.describe_processing_job.side_effect = lambda ProcessingJobName: {
            "ProcessingJobName": ProcessingJobName,
            "ProcessingOutputConfig": {
                "Outputs": [
                    {
                        "OutputName": "monitoring_output",
                        "S3Output": {
                            "S3Uri": f"s3://my-bucket/{ProcessingJobName}/results",
                            "LocalPath": OUTPUT_PATH,
                            "S3UploadMode": "Continuous",
                        },
                    }
                ]
            },
        }

        executions = monitor.list_executions()
        assert [execution.job_name for execution in executions] == ["older", "newer"]

        statistics = monitor.latest_monitoring_statistics()
        assert statistics.file_s3_uri == "s3://my-bucket/newer/results/statistics.json"
        violations = monitor.latest_monitoring_constraint_violations()
        assert violations.file_s3_uri == "s3://my-bucket/newer/results/constraint_violations.json"

    def test_no_executions(self, monitor, sagemaker_client):
        """Test a schedule that has not run yet."""
        monitor.monitoring_schedule_name = "my-schedule"
        sagemaker_client.list_monitoring_executions.return_value = {"MonitoringExecutionSummaries": []}
        assert monitor.list_executions() == []
        assert monitor.latest_monitoring_statistics() is None
