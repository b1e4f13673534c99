"""Tests for real-time predictions and endpoint management."""

import io

from botocore.exceptions import ClientError
import pytest

from sagekit.deserializers import JSONDeserializer, PandasDeserializer
from sagekit.predictor import Predictor
from sagekit.serializers import CSVSerializer


@pytest.fixture
def predictor(session):
    return Predictor("endpoint", session, serializer=CSVSerializer(), deserializer=JSONDeserializer())


@pytest.fixture
def endpoint_described(sagemaker_client):
    sagemaker_client.describe_endpoint.return_value = {
        "EndpointConfigName": "config",
        "EndpointStatus": "InService",
    }
    sagemaker_client.describe_endpoint_config.return_value = {
        "EndpointConfigArn": "arn:config",
        "ProductionVariants": [{"ModelName": "model-a", "VariantName": "AllTraffic"}],
    }
    sagemaker_client.list_tags.return_value = {"Tags": []}


class TestPredict:
    """Test invoking the endpoint."""

    def test_predict(self, predictor, runtime_client):
        """Test the request and response handling."""
        runtime_client.invoke_endpoint.return_value = {
            "Body": io.BytesIO(b'{"predictions": [0.5]}'),
            "ContentType": "application/json",
        }

        result = predictor.predict([1, 2, 3], target_variant="blue", inference_id="req-1")

        assert result == {"predictions": [0.5]}
        runtime_client.invoke_endpoint.assert_called_once_with(
            EndpointName="endpoint",
            ContentType="text/csv",
            Accept="application/json",
            TargetVariant="blue",
            InferenceId="req-1",
            Body="1,2,3",
        )

    def test_initial_args_take_precedence(self, predictor, runtime_client):
        """Test that initial arguments are not overridden."""
        runtime_client.invoke_endpoint.return_value = {"Body": io.BytesIO(b"[]")}
        predictor.predict("1,2", initial_args={"ContentType": "text/plain", "CustomAttributes": "x"})

        request = runtime_client.invoke_endpoint.call_args.kwargs
        assert request["ContentType"] == "text/plain"
        assert request["CustomAttributes"] == "x"

    def test_multiple_accept_types(self, session):
        """Test that several accepted types are joined."""
        predictor = Predictor("endpoint", session, deserializer=PandasDeserializer())
        assert predictor._create_request_args(b"x")["Accept"] == "text/csv, application/json"

    def test_defaults(self, session):
        """Test the default content and accept types."""
        predictor = Predictor("endpoint", session)
        assert predictor.content_type == "application/octet-stream"
        assert predictor.accept == "*/*"


class TestEndpointManagement:
    """Test updating and deleting the endpoint."""

    def test_update_instance_settings(self, predictor, sagemaker_client, endpoint_described, no_sleep):
        """Test that a new variant replaces the current one."""
        predictor.update_endpoint(initial_instance_count=3, instance_type="ml.c5.xlarge")

        request = sagemaker_client.create_endpoint_config.call_args.kwargs
        assert request["EndpointConfigName"].startswith("config-")
        assert request["ProductionVariants"] == [
            {
                "ModelName": "model-a",
                "InstanceType": "ml.c5.xlarge",
                "InitialInstanceCount": 3,
                "VariantName": "AllTraffic",
                "InitialVariantWeight": 1,
            }
        ]
        sagemaker_client.update_endpoint.assert_called_once_with(
            EndpointName="endpoint", EndpointConfigName=request["EndpointConfigName"]
        )

    def test_update_needs_both_instance_settings(self, predictor):
        """Test that instance count and type come together."""
        with pytest.raises(ValueError, match="Missing initial_instance_count"):
            predictor.update_endpoint(instance_type="ml.c5.xlarge")

    def test_update_with_multiple_models(self, predictor, sagemaker_client, endpoint_described):
        """Test that no default model is chosen for multi-model endpoints."""
        sagemaker_client.describe_endpoint_config.return_value = {
            "ProductionVariants": [{"ModelName": "a"}, {"ModelName": "b"}]
        }
        with pytest.raises(ValueError, match="multiple models"):
            predictor.update_endpoint(initial_instance_count=1, instance_type="ml.c5.xlarge")

    def test_delete_endpoint(self, predictor, sagemaker_client, endpoint_described):
        """Test that the endpoint configuration is deleted too."""
        predictor.delete_endpoint()
        sagemaker_client.delete_endpoint_config.assert_called_once_with(EndpointConfigName="config")
        sagemaker_client.delete_endpoint.assert_called_once_with(EndpointName="endpoint")

    def test_delete_model_failure(self, predictor, sagemaker_client, endpoint_described):
        """Test that failed model deletions are reported together."""
        sagemaker_client.delete_model.side_effect = ClientError(
            {"Error": {"Code": "ValidationException"}}, "DeleteModel"
        )
        with pytest.raises(ValueError, match="model-a"):
            predictor.delete_model()

    def test_disable_data_capture(self, predictor, sagemaker_client, endpoint_described, no_sleep):
        """Test switching to a configuration with capture disabled."""
        predictor.disable_data_capture()

        request = sagemaker_client.create_endpoint_config.call_args.kwargs
        assert request["DataCaptureConfig"]["EnableCapture"] is False
        assert request["ProductionVariants"] == [{"ModelName": "model-a", "VariantName": "AllTraffic"}]
        assert predictor._endpoint_config_name == request["EndpointConfigName"]

    def test_list_monitors_empty(self, predictor, sagemaker_client):
        """Test an endpoint without monitoring schedules."""
        sagemaker_client.list_monitoring_schedules.return_value = {"MonitoringScheduleSummaries": []}
        assert predictor.list_monitors() == []
