"""Tests for the XGBoost, Scikit-learn and PyTorch framework estimators and models."""

import io

import numpy as np
import pytest

from sagekit.deserializers import CSVDeserializer, NumpyDeserializer
from sagekit.pytorch import PyTorch, PyTorchModel
from sagekit.serializers import CSVSerializer, NumpySerializer
from sagekit.sklearn import SKLearn, SKLearnModel, SKLearnPredictor
from sagekit.xgboost import XGBoost, XGBoostModel, XGBoostPredictor

ROLE = "arn:aws:iam::123456789012:role/SageMakerRole"
XGBOOST_IMAGE = "246618743249.dkr.ecr.us-west-2.amazonaws.com/sagemaker-xgboost:1.0-1-cpu-py3"
SKLEARN_IMAGE = "246618743249.dkr.ecr.us-west-2.amazonaws.com/sagemaker-scikit-learn:0.23-1-cpu-py3"
PYTORCH_IMAGE = "763104351884.dkr.ecr.us-west-2.amazonaws.com/pytorch-training:1.8.1-gpu-py36"
SOURCE = "s3://my-bucket/xgb-job/source/sourcedir.tar.gz"


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "train.py"
    path.write_text("print('training')\n")
    return path


def framework_job_description(image, hyperparameters, instance_type="ml.m5.xlarge"):
    return {
        "TrainingJobName": "framework-job-2024-01-02-03-04-05-678",
        "TrainingJobArn": "arn:aws:sagemaker:us-west-2:123456789012:training-job/framework-job",
        "TrainingJobStatus": "Completed",
        "RoleArn": ROLE,
        "AlgorithmSpecification": {"TrainingImage": image, "TrainingInputMode": "File"},
        "ResourceConfig": {"InstanceCount": 1, "InstanceType": instance_type, "VolumeSizeInGB": 30},
        "StoppingCondition": {"MaxRuntimeInSeconds": 3600},
        "OutputDataConfig": {"S3OutputPath": "s3://my-bucket/"},
        "HyperParameters": {
            "sagemaker_program": '"train.py"',
            "sagemaker_submit_directory": f'"{SOURCE}"',
            "sagemaker_container_log_level": "20",
            **hyperparameters,
        },
        "ModelArtifacts": {"S3ModelArtifacts": "s3://my-bucket/framework-job/output/model.tar.gz"},
    }


class TestXGBoost:
    """Test script-mode training in the XGBoost container."""

    @pytest.fixture
    def xgb(self, session, script):
        return XGBoost(
            str(script),
            "1.0-1",
            role=ROLE,
            instance_count=1,
            instance_type="ml.m5.xlarge",
            hyperparameters={"num_round": 10, "objective": "binary:logistic"},
            sagemaker_session=session,
        )

    def test_requires_version_or_image(self, session, script):
        """Test that a version or an image must be given."""
        with pytest.raises(ValueError, match="framework_version or py_version was None"):
            XGBoost(str(script), None, role=ROLE, instance_count=1, instance_type="ml.m5.xlarge", sagemaker_session=session)

    def test_fit_uploads_code(self, xgb, sagemaker_client, s3_client):
        """Test that the script is archived and announced through hyperparameters."""
        xgb.fit("s3://my-bucket/train", wait=False, job_name="xgb-job")

        assert s3_client.upload_file.call_args.args[1:3] == ("my-bucket", "xgb-job/source/sourcedir.tar.gz")
        request = sagemaker_client.create_training_job.call_args.kwargs
        assert request["AlgorithmSpecification"]["TrainingImage"] == XGBOOST_IMAGE
        assert request["HyperParameters"] == {
            "num_round": "10",
            "objective": '"binary:logistic"',
            "sagemaker_submit_directory": f'"{SOURCE}"',
            "sagemaker_program": '"train.py"',
            "sagemaker_container_log_level": "20",
            "sagemaker_job_name": '"xgb-job"',
            "sagemaker_region": '"us-west-2"',
        }

    def test_generated_job_name(self, xgb, sagemaker_client):
        """Test that job names derive from the framework image."""
        xgb.fit("s3://my-bucket/train", wait=False)
        assert sagemaker_client.create_training_job.call_args.kwargs["TrainingJobName"].startswith(
            "sagemaker-xgboost-"
        )

    def test_create_model_reuses_code(self, xgb, sagemaker_client, s3_client, no_sleep):
        """Test that the model serves the uploaded training code."""
        sagemaker_client.describe_training_job.return_value = {
            "TrainingJobStatus": "Completed",
            "ModelArtifacts": {"S3ModelArtifacts": "s3://my-bucket/xgb-job/output/model.tar.gz"},
        }
        xgb.fit("s3://my-bucket/train", job_name="xgb-job", logs=False)
        s3_client.upload_file.reset_mock()

        model = xgb.create_model()
        c_def = model.prepare_container_def("ml.m5.large")

        assert isinstance(model, XGBoostModel)
        assert model.predictor_cls is XGBoostPredictor
        s3_client.upload_file.assert_not_called()
        assert c_def["Image"] == XGBOOST_IMAGE
        assert c_def["ModelDataUrl"] == "s3://my-bucket/xgb-job/output/model.tar.gz"
        assert c_def["Environment"]["SAGEMAKER_PROGRAM"] == "train.py"
        assert c_def["Environment"]["SAGEMAKER_SUBMIT_DIRECTORY"] == SOURCE

    def test_attach(self, session, sagemaker_client, no_sleep):
        """Test that versions and decoded hyperparameters are recovered."""
        sagemaker_client.describe_training_job.return_value = framework_job_description(
            XGBOOST_IMAGE, {"num_round": "10"}
        )
        sagemaker_client.list_tags.return_value = {"Tags": []}

        estimator = XGBoost.attach("framework-job-2024-01-02-03-04-05-678", sagemaker_session=session)

        assert estimator.framework_version == "1.0-1"
        assert estimator.py_version == "py3"
        assert estimator.entry_point == "train.py"
        assert estimator.source_dir == SOURCE
        assert estimator.uploaded_code.script_name == "train.py"
        assert estimator.image_uri is None
        assert estimator.hyperparameters()["num_round"] == "10"

    def test_attach_other_framework(self, session, sagemaker_client):
        """Test that jobs of another framework are rejected."""
        sagemaker_client.describe_training_job.return_value = framework_job_description(PYTORCH_IMAGE, {})
        with pytest.raises(ValueError, match="didn't use image for requested framework"):
            XGBoost.attach("framework-job-2024-01-02-03-04-05-678", sagemaker_session=session)

    def test_model_requires_version_or_image(self, session):
        """Test that a model needs a version or an image."""
        with pytest.raises(ValueError, match="Either framework_version or image_uri"):
            XGBoostModel("s3://my-bucket/model.tar.gz", ROLE, "inference.py", sagemaker_session=session)

    def test_predictor_uses_csv(self, session, runtime_client):
        """Test CSV requests and responses."""
        predictor = XGBoostPredictor("xgb-endpoint", session)
        assert isinstance(predictor.serializer, CSVSerializer)
        assert isinstance(predictor.deserializer, CSVDeserializer)


class TestSKLearn:
    """Test the Scikit-learn estimator and model."""

    def test_single_cpu_instance(self, session, script):
        """Test that training runs on one instance of the Scikit-learn image."""
        estimator = SKLearn(
            str(script), "0.23-1", role=ROLE, instance_type="ml.m5.xlarge", sagemaker_session=session
        )
        assert estimator.instance_count == 1
        assert estimator.training_image_uri() == SKLEARN_IMAGE

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"instance_type": "ml.p3.2xlarge"}, "GPU training in not supported"),
            ({"instance_type": "ml.m5.xlarge", "instance_count": 2}, "does not support distributed training"),
            ({"instance_type": "ml.m5.xlarge", "py_version": "py2"}, "only supports Python 3"),
        ],
    )
    def test_rejected_settings(self, session, script, kwargs, message):
        """Test GPU, multi-instance and Python 2 settings."""
        with pytest.raises(ValueError, match=message):
            SKLearn(str(script), "0.23-1", role=ROLE, sagemaker_session=session, **kwargs)

    def test_attach(self, session, sagemaker_client, no_sleep):
        """Test recovering the version from the Scikit-learn image."""
        sagemaker_client.describe_training_job.return_value = framework_job_description(SKLEARN_IMAGE, {})
        sagemaker_client.list_tags.return_value = {"Tags": []}

        estimator = SKLearn.attach("framework-job-2024-01-02-03-04-05-678", sagemaker_session=session)

        assert estimator.framework_version == "0.23-1"
        assert estimator.training_image_uri() == SKLEARN_IMAGE

    def test_model_rejects_accelerator(self, session):
        """Test that Elastic Inference is not supported."""
        model = SKLearnModel(
            "s3://my-bucket/model.tar.gz",
            ROLE,
            "inference.py",
            framework_version="0.23-1",
            source_dir=SOURCE,
            sagemaker_session=session,
        )
        with pytest.raises(ValueError, match="Accelerator types are not supported"):
            model.prepare_container_def("ml.m5.large", accelerator_type="ml.eia2.medium")

    def test_model_image(self, session):
        """Test that the serving image is resolved at deployment."""
        model = SKLearnModel(
            "s3://my-bucket/model.tar.gz",
            ROLE,
            "inference.py",
            framework_version="0.23-1",
            source_dir=SOURCE,
            sagemaker_session=session,
        )
        assert model.prepare_container_def("ml.m5.large")["Image"] == SKLEARN_IMAGE

    def test_predictor_round_trip(self, session, runtime_client):
        """Test NPY requests and responses."""
        predictor = SKLearnPredictor("sklearn-endpoint", session)
        assert isinstance(predictor.serializer, NumpySerializer)
        assert isinstance(predictor.deserializer, NumpyDeserializer)

        buffer = io.BytesIO()
        np.save(buffer, np.array([1, 0]))
        runtime_client.invoke_endpoint.return_value = {
            "Body": io.BytesIO(buffer.getvalue()),
            "ContentType": "application/x-npy",
        }

        result = predictor.predict(np.array([[1.0, 2.0], [3.0, 4.0]]))

        assert result.tolist() == [1, 0]
        assert runtime_client.invoke_endpoint.call_args.kwargs["ContentType"] == "application/x-npy"


class TestPyTorch:
    """Test the PyTorch estimator, its distribution settings and model."""

    def estimator(self, session, script, instance_type="ml.p3.2xlarge", **kwargs):
        return PyTorch(
            str(script),
            framework_version="1.8.1",
            py_version="py36",
            role=ROLE,
            instance_count=2,
            instance_type=instance_type,
            sagemaker_session=session,
            **kwargs,
        )

    def test_requires_py_version(self, session, script):
        """Test that both versions are needed without an image."""
        with pytest.raises(ValueError, match="framework_version or py_version was None"):
            PyTorch(str(script), framework_version="1.8.1", role=ROLE, instance_count=1, instance_type="ml.p3.2xlarge", sagemaker_session=session)

    def test_training_image(self, session, script):
        """Test that the GPU training image follows the instance type."""
        assert self.estimator(session, script).training_image_uri() == PYTORCH_IMAGE

    def test_mpi_distribution(self, session, script):
        """Test the hyperparameters enabling MPI."""
        estimator = self.estimator(
            session, script, distribution={"mpi": {"enabled": True, "processes_per_host": 8}}
        )
        hyperparameters = estimator.hyperparameters()
        assert hyperparameters["sagemaker_mpi_enabled"] == "true"
        assert hyperparameters["sagemaker_mpi_num_of_processes_per_host"] == "8"
        assert hyperparameters["sagemaker_mpi_custom_mpi_options"] == '""'

    def test_model_parallel(self, session, script):
        """Test that model parallelism passes its parameters with MPI."""
        estimator = self.estimator(
            session,
            script,
            distribution={
                "mpi": {"enabled": True},
                "smdistributed": {"modelparallel": {"enabled": True, "parameters": {"partitions": 2}}},
            },
        )
        hyperparameters = estimator.hyperparameters()
        assert hyperparameters["mp_parameters"] == '{"partitions": 2}'
        assert hyperparameters["sagemaker_distributed_dataparallel_enabled"] == "false"
        assert hyperparameters["sagemaker_instance_type"] == '"ml.p3.2xlarge"'

    def test_model_parallel_requires_mpi(self, session, script):
        """Test that model parallelism without MPI is rejected."""
        estimator = self.estimator(
            session, script, distribution={"smdistributed": {"modelparallel": {"enabled": True}}}
        )
        with pytest.raises(ValueError, match="Model Parallelism without MPI"):
            estimator.hyperparameters()

    def test_data_parallel(self, session, script):
        """Test data parallelism on a supported instance type."""
        estimator = self.estimator(
            session,
            script,
            instance_type="ml.p3.16xlarge",
            distribution={"smdistributed": {"dataparallel": {"enabled": True}}},
        )
        hyperparameters = estimator.hyperparameters()
        assert hyperparameters["sagemaker_distributed_dataparallel_enabled"] == "true"
        assert hyperparameters["sagemaker_instance_type"] == '"ml.p3.16xlarge"'

    @pytest.mark.parametrize(
        "distribution, message",
        [
            ({"smdistributed": {"dataparallel": {"enabled": True}}}, "not supported by smdataparallel"),
            (
                {"smdistributed": {"dataparallel": {"enabled": True}, "modelparallel": {"enabled": True}}},
                "Cannot use more than 1 smdistributed strategy",
            ),
            ({"smdistributed": {"pipeline": {"enabled": True}}}, "Invalid smdistributed strategy"),
            ({"smdistributed": True}, "requires a dictionary"),
        ],
    )
    def test_invalid_smdistributed(self, session, script, distribution, message):
        """Test rejected smdistributed configurations."""
        with pytest.raises(ValueError, match=message):
            self.estimator(session, script, distribution=distribution)

    def test_attach_recovers_distribution(self, session, sagemaker_client, no_sleep):
        """Test that MPI settings move from hyperparameters to the distribution."""
        sagemaker_client.describe_training_job.return_value = framework_job_description(
            PYTORCH_IMAGE,
            {
                "epochs": "5",
                "sagemaker_mpi_enabled": "true",
                "sagemaker_mpi_num_of_processes_per_host": "4",
                "sagemaker_mpi_custom_mpi_options": '""',
            },
            instance_type="ml.p3.2xlarge",
        )
        sagemaker_client.list_tags.return_value = {"Tags": []}

        estimator = PyTorch.attach("framework-job-2024-01-02-03-04-05-678", sagemaker_session=session)

        assert estimator.framework_version == "1.8.1"
        assert estimator.py_version == "py36"
        assert estimator.distribution == {"mpi": {"enabled": True, "processes_per_host": 4}}
        assert "sagemaker_mpi_enabled" not in estimator._hyperparameters
        assert estimator.hyperparameters()["epochs"] == "5"

    def test_model_requires_instance_type_or_image(self, session, script):
        """Test that the serving image needs an instance type."""
        model = PyTorchModel(
            "s3://my-bucket/model.tar.gz",
            ROLE,
            str(script),
            framework_version="1.8.1",
            py_version="py36",
            sagemaker_session=session,
        )
        with pytest.raises(ValueError, match="Must supply either an instance type"):
            model.prepare_container_def()

    def test_model_inference_image(self, session, script):
        """Test resolving the CPU inference image."""
        model = PyTorchModel(
            "s3://my-bucket/model.tar.gz",
            ROLE,
            str(script),
            framework_version="1.8.1",
            py_version="py36",
            name="torch-model",
            sagemaker_session=session,
        )
        c_def = model.prepare_container_def("ml.c5.xlarge")
        assert c_def["Image"] == "763104351884.dkr.ecr.us-west-2.amazonaws.com/pytorch-inference:1.8.1-cpu-py36"
        assert c_def["Environment"]["SAGEMAKER_SUBMIT_DIRECTORY"] == (
            "s3://my-bucket/torch-model/sourcedir.tar.gz"
        )
