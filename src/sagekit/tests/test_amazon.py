"""Tests for Amazon's built-in algorithm estimators."""

import io

import pytest

from sagekit.amazon import validation
from sagekit.amazon.amazon_estimator import RecordSet
from sagekit.amazon.hyperparameter import Hyperparameter
from sagekit.amazon.kmeans import KMeans, KMeansModel, KMeansPredictor
from sagekit.amazon.pca import PCA, PCAModel, PCAPredictor
from sagekit.parameter import IntegerParameter
from sagekit.tuner import HyperparameterTuner

ROLE = "arn:aws:iam::123456789012:role/SageMakerRole"
KMEANS_IMAGE = "174872318107.dkr.ecr.us-west-2.amazonaws.com/kmeans:1"
PCA_IMAGE = "174872318107.dkr.ecr.us-west-2.amazonaws.com/pca:1"


class Algorithm:
    speed = Hyperparameter("speed_name", (validation.gt(0), validation.lt(10)), "An integer in (0, 10)", int)
    mode = Hyperparameter("mode", validation.isin("a", "b"))


@pytest.fixture
def kmeans(session):
    return KMeans(ROLE, 1, "ml.c5.xlarge", k=10, init_method="kmeans++", sagemaker_session=session)


@pytest.fixture
def records():
    return RecordSet("s3://my-bucket/data.manifest", num_records=1000, feature_dim=5)


class TestHyperparameter:
    """Test the validated hyperparameter descriptor."""

    def test_conversion_and_storage(self):
        """Test that values are converted and stored under the hyperparameter name."""
        algorithm = Algorithm()
        algorithm.speed = "3"
        assert algorithm.speed == 3
        assert algorithm._hyperparameters == {"speed_name": 3}

    def test_unset(self):
        """Test unset values and deletion."""
        algorithm = Algorithm()
        assert algorithm.speed is None
        algorithm.speed = 4
        del algorithm.speed
        assert algorithm.speed is None
        assert isinstance(Algorithm.speed, Hyperparameter)

    def test_validation(self):
        """Test that every validation must pass."""
        algorithm = Algorithm()
        with pytest.raises(ValueError, match=r"Invalid hyperparameter value 12 for speed_name\. Expecting"):
            algorithm.speed = 12
        with pytest.raises(ValueError, match="Invalid hyperparameter value c for mode"):
            algorithm.mode = "c"

    def test_serialize_all(self):
        """Test that set values are strings and lists are JSON."""
        algorithm = Algorithm()
        algorithm.speed = 2
        algorithm.mode = None
        algorithm._hyperparameters["metrics"] = ["msd", "ssd"]
        assert Hyperparameter.serialize_all(algorithm) == {"speed_name": "2", "metrics": '["msd", "ssd"]'}


class TestRecordSet:
    """Test record sets and the estimator's data location."""

    def test_channel(self):
        """Test the sharded channel of a record set."""
        record_set = RecordSet("s3://my-bucket/data", 10, 3, s3_data_type="S3Prefix", channel="test", content_type="text/csv")
        channel = record_set.data_channel()["test"].config
        assert channel == {
            "DataSource": {
                "S3DataSource": {
                    "S3DataType": "S3Prefix",
                    "S3Uri": "s3://my-bucket/data",
                    "S3DataDistributionType": "ShardedByS3Key",
                }
            },
            "ContentType": "text/csv",
        }

    def test_data_location(self, kmeans):
        """Test the default location and its normalization."""
        assert kmeans.data_location == "s3://my-bucket/sagemaker-record-sets/"
        kmeans.data_location = "s3://other/prefix"
        assert kmeans.data_location == "s3://other/prefix/"
        with pytest.raises(ValueError, match="Expecting an S3 URL"):
            kmeans.data_location = "/local/path"


class TestKMeans:
    """Test the k-means estimator."""

    def test_hyperparameters(self, session):
        """Test serialized hyperparameters, including dense input."""
        estimator = KMeans(ROLE, 1, "ml.c5.xlarge", k=3, tol=0.5, eval_metrics=["msd"], sagemaker_session=session)
        assert estimator.hyperparameters() == {
            "force_dense": "True",
            "k": "3",
            "local_lloyd_tol": "0.5",
            "eval_metrics": '["msd"]',
        }

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"k": 1},
            {"init_method": "smart"},
            {"tol": 1.5},
            {"eval_metrics": ["msd", "mae"]},
            {"half_life_time_size": -1},
        ],
    )
    def test_invalid_hyperparameters(self, session, kwargs):
        """Test that invalid values are rejected at construction."""
        with pytest.raises(ValueError, match="Invalid hyperparameter value"):
            KMeans(ROLE, 1, "ml.c5.xlarge", sagemaker_session=session, **kwargs)

    def test_fit(self, kmeans, records, sagemaker_client):
        """Test that record sets set feature_dim and the training channel."""
        kmeans.fit(records, mini_batch_size=100, wait=False)

        request = sagemaker_client.create_training_job.call_args.kwargs
        assert request["TrainingJobName"].startswith("kmeans-")
        assert request["AlgorithmSpecification"]["TrainingImage"] == KMEANS_IMAGE
        assert request["HyperParameters"] == {
            "force_dense": "True",
            "k": "10",
            "init_method": "kmeans++",
            "feature_dim": "5",
            "mini_batch_size": "100",
        }
        assert request["InputDataConfig"] == [
            {
                "DataSource": {
                    "S3DataSource": {
                        "S3DataType": "ManifestFile",
                        "S3Uri": "s3://my-bucket/data.manifest",
                        "S3DataDistributionType": "ShardedByS3Key",
                    }
                },
                "ChannelName": "train",
            }
        ]

    def test_fit_needs_train_channel(self, kmeans):
        """Test that a list of record sets must contain a train channel."""
        with pytest.raises(ValueError, match="Must provide train channel"):
            kmeans.fit([RecordSet("s3://my-bucket/test", 10, 5, channel="test")], wait=False)

    def test_fit_rejects_duplicate_channels(self, kmeans, records):
        """Test that channels must be distinct."""
        with pytest.raises(ValueError, match="Duplicate channels"):
            kmeans.fit([records, records], wait=False)

    def test_attach(self, session, sagemaker_client, no_sleep):
        """Test that job hyperparameters map back to constructor arguments."""
        sagemaker_client.describe_training_job.return_value = {
            "TrainingJobName": "kmeans-2024-01-02-03-04-05-678",
            "TrainingJobArn": "arn:aws:sagemaker:us-west-2:123456789012:training-job/kmeans",
            "TrainingJobStatus": "Completed",
            "RoleArn": ROLE,
            "AlgorithmSpecification": {"TrainingImage": KMEANS_IMAGE, "TrainingInputMode": "File"},
            "ResourceConfig": {"InstanceCount": 1, "InstanceType": "ml.c5.xlarge", "VolumeSizeInGB": 30},
            "StoppingCondition": {"MaxRuntimeInSeconds": 3600},
            "OutputDataConfig": {"S3OutputPath": "s3://my-bucket/"},
            "HyperParameters": {
                "force_dense": "True",
                "k": "10",
                "local_lloyd_init_method": "kmeans++",
                "eval_metrics": '["msd", "ssd"]',
                "feature_dim": "5",
            },
            "ModelArtifacts": {"S3ModelArtifacts": "s3://my-bucket/kmeans/model.tar.gz"},
        }
        sagemaker_client.list_tags.return_value = {"Tags": []}

        estimator = KMeans.attach("kmeans-2024-01-02-03-04-05-678", sagemaker_session=session)

        assert estimator.k == 10
        assert estimator.local_init_method == "kmeans++"
        assert estimator.eval_metrics == ["msd", "ssd"]
        assert estimator.base_job_name == "kmeans"
        assert estimator.model_data == "s3://my-bucket/kmeans/model.tar.gz"

    def test_deploy(self, kmeans, records, sagemaker_client, runtime_client, no_sleep):
        """Test deploying and predicting with CSV in and JSON out."""
        sagemaker_client.describe_training_job.return_value = {
            "TrainingJobStatus": "Completed",
            "ModelArtifacts": {"S3ModelArtifacts": "s3://my-bucket/kmeans/model.tar.gz"},
        }
        sagemaker_client.describe_endpoint.return_value = {"EndpointStatus": "InService"}
        kmeans.fit(records, logs=False)

        predictor = kmeans.deploy(1, "ml.m5.large", endpoint_name="kmeans-endpoint")

        assert isinstance(predictor, KMeansPredictor)
        assert sagemaker_client.create_model.call_args.kwargs["PrimaryContainer"]["Image"] == KMEANS_IMAGE

        runtime_client.invoke_endpoint.return_value = {
            "Body": io.BytesIO(b'{"predictions": [{"closest_cluster": 1.0, "distance_to_cluster": 0.5}]}')
        }
        result = predictor.predict([[0.1, 0.2, 0.3, 0.4, 0.5]])
        assert result["predictions"][0]["closest_cluster"] == 1.0
        request = runtime_client.invoke_endpoint.call_args.kwargs
        assert request["ContentType"] == "text/csv"
        assert request["Body"] == "0.1,0.2,0.3,0.4,0.5"

    def test_model(self, session):
        """Test the serving image and predictor of a k-means model."""
        model = KMeansModel("s3://my-bucket/model.tar.gz", ROLE, sagemaker_session=session)
        assert model.image_uri == KMEANS_IMAGE
        assert model.predictor_cls is KMeansPredictor

    def test_tuning_ranges_are_validated(self, kmeans):
        """Test that range bounds must be valid hyperparameter values."""
        with pytest.raises(ValueError, match="Value 1 for hyperparameter k is invalid"):
            HyperparameterTuner(kmeans, "test:msd", {"k": IntegerParameter(1, 10)})

    def test_tuning_with_record_set(self, kmeans, records, sagemaker_client):
        """Test that record sets prepare the estimator before tuning."""
        tuner = HyperparameterTuner(kmeans, "test:msd", {"k": IntegerParameter(2, 10)}, objective_type="Minimize")
        tuner.fit(records, mini_batch_size=50, job_name="kmeans-tuning")

        definition = sagemaker_client.create_hyper_parameter_tuning_job.call_args.kwargs["TrainingJobDefinition"]
        assert definition["StaticHyperParameters"] == {
            "force_dense": "True",
            "init_method": "kmeans++",
            "feature_dim": "5",
            "mini_batch_size": "50",
        }
        assert definition["InputDataConfig"][0]["ChannelName"] == "train"


class TestPCA:
    """Test the PCA estimator."""

    @pytest.mark.parametrize(
        "instance_count, num_records, expected",
        [(1, 1000, "500"), (2, 300, "150"), (4, 2, "1")],
    )
    def test_default_mini_batch_size(self, session, sagemaker_client, instance_count, num_records, expected):
        """Test that the mini-batch size is the per-instance share, capped at 500."""
        pca = PCA(ROLE, instance_count, "ml.c5.xlarge", num_components=3, sagemaker_session=session)
        pca.fit(RecordSet("s3://my-bucket/data", num_records, 8), wait=False)
        hyperparameters = sagemaker_client.create_training_job.call_args.kwargs["HyperParameters"]
        assert hyperparameters["mini_batch_size"] == expected
        assert hyperparameters["feature_dim"] == "8"

    def test_explicit_mini_batch_size(self, session, sagemaker_client):
        """Test that an explicit mini-batch size wins."""
        pca = PCA(ROLE, 1, "ml.c5.xlarge", num_components=3, sagemaker_session=session)
        pca.fit(RecordSet("s3://my-bucket/data", 1000, 8), mini_batch_size=64, wait=False)
        assert sagemaker_client.create_training_job.call_args.kwargs["HyperParameters"]["mini_batch_size"] == "64"

    def test_hyperparameters(self, session):
        """Test boolean parsing and the extra components sentinel."""
        pca = PCA(
            ROLE,
            1,
            "ml.c5.xlarge",
            num_components=3,
            algorithm_mode="randomized",
            subtract_mean="false",
            extra_components=-1,
            sagemaker_session=session,
        )
        assert pca.subtract_mean is False
        assert pca.hyperparameters() == {
            "num_components": "3",
            "algorithm_mode": "randomized",
            "subtract_mean": "False",
            "extra_components": "-1",
        }

    def test_invalid_hyperparameters(self, session):
        """Test rejected values."""
        with pytest.raises(ValueError, match="extra_components"):
            PCA(ROLE, 1, "ml.c5.xlarge", extra_components=-2, sagemaker_session=session)
        with pytest.raises(ValueError, match="algorithm_mode"):
            PCA(ROLE, 1, "ml.c5.xlarge", algorithm_mode="fast", sagemaker_session=session)

    def test_model(self, session):
        """Test the serving image and predictor of a PCA model."""
        model = PCAModel("s3://my-bucket/model.tar.gz", ROLE, sagemaker_session=session)
        assert model.image_uri == PCA_IMAGE
        assert model.predictor_cls is PCAPredictor
        assert PCA(ROLE, 1, "ml.c5.xlarge", sagemaker_session=session).training_image_uri() == PCA_IMAGE
