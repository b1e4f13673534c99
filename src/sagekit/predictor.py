"""Client for making real-time predictions against a SageMaker endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from .deserializers import BaseDeserializer, BytesDeserializer
from .serializers import BaseSerializer, IdentitySerializer
from .session import Session, production_variant
from .utils import name_from_base

if TYPE_CHECKING:
    from .model_monitor import DataCaptureConfig, ModelMonitor

logger = logging.getLogger(__name__)


class Predictor:
    """Make prediction requests to an Amazon SageMaker endpoint."""

    def __init__(
        self,
        endpoint_name: str,
        sagemaker_session: Session | None = None,
        serializer: BaseSerializer | None = None,
        deserializer: BaseDeserializer | None = None,
    ) -> None:
        """Initialize a predictor.

        Args:
            endpoint_name: Name of the endpoint to send requests to.
            sagemaker_session: Session used for AWS calls.
            serializer: Encodes request data. Defaults to passing bytes through.
            deserializer: Decodes responses. Defaults to returning bytes.
        """
        self.endpoint_name = endpoint_name
        self.sagemaker_session = sagemaker_session or Session()
        self.serializer = serializer or IdentitySerializer()
        self.deserializer = deserializer or BytesDeserializer()
        self._endpoint_config_name: str | None = None
        self._model_names: list[str] | None = None

    @property
    def content_type(self) -> str:
        """MIME type of the data sent to the endpoint."""
        return self.serializer.content_type

    @property
    def accept(self) -> str | tuple[str, ...]:
        """MIME type(s) accepted from the endpoint."""
        return self.deserializer.accept

    def predict(
        self,
        data: Any,
        initial_args: dict[str, Any] | None = None,
        target_model: str | None = None,
        target_variant: str | None = None,
        inference_id: str | None = None,
    ) -> Any:
        """Return the inference for the given data.

        Args:
            data: Input data, encoded with the serializer.
            initial_args: Default ``InvokeEndpoint`` arguments, overridden by
                the predictor's own values only where absent.
            target_model: Model to invoke on a multi-model endpoint.
            target_variant: Production variant to invoke.
            inference_id: Identifier recorded with captured data.

        Returns:
            The response body decoded with the deserializer.
        """
        request_args = self._create_request_args(
            data, initial_args, target_model, target_variant, inference_id
        )
        response = self.sagemaker_session.sagemaker_runtime_client.invoke_endpoint(**request_args)
        return self._handle_response(response)

    def _handle_response(self, response: dict[str, Any]) -> Any:
        response_body = response["Body"]
        content_type = response.get("ContentType", "application/octet-stream")
        return self.deserializer.deserialize(response_body, content_type)

    def _create_request_args(
        self,
        data: Any,
        initial_args: dict[str, Any] | None = None,
        target_model: str | None = None,
        target_variant: str | None = None,
        inference_id: str | None = None,
    ) -> dict[str, Any]:
        args = dict(initial_args) if initial_args else {}

        if "EndpointName" not in args:
            args["EndpointName"] = self.endpoint_name
        if "ContentType" not in args:
            args["ContentType"] = self.content_type
        if "Accept" not in args:
            accept = self.accept
            args["Accept"] = accept if isinstance(accept, str) else ", ".join(accept)

        if target_model:
            args["TargetModel"] = target_model
        if target_variant:
            args["TargetVariant"] = target_variant
        if inference_id:
            args["InferenceId"] = inference_id

        args["Body"] = self.serializer.serialize(data)
        return args

    def update_endpoint(
        self,
        initial_instance_count: int | None = None,
        instance_type: str | None = None,
        accelerator_type: str | None = None,
        model_name: str | None = None,
        tags: list[dict[str, str]] | None = None,
        kms_key: str | None = None,
        data_capture_config_dict: dict[str, Any] | None = None,
        wait: bool = True,
    ) -> None:
        """Update the endpoint with a new endpoint configuration.

        The new configuration copies the current one, replacing the
        production variant when instance settings or a model are given.

        Raises:
            ValueError: If only some instance settings are given, or no
                model can be chosen.
        """
        production_variants = None

        if initial_instance_count or instance_type or accelerator_type or model_name:
            if instance_type is None or initial_instance_count is None:
                raise ValueError(
                    "Missing initial_instance_count and/or instance_type. Provided values: "
                    f"initial_instance_count={initial_instance_count}, "
                    f"instance_type={instance_type}, accelerator_type={accelerator_type}, "
                    f"model_name={model_name}."
                )

            if model_name is None:
                current_model_names = self._get_model_names()
                if len(current_model_names) > 1:
                    raise ValueError(
                        "Unable to choose a default model for a new EndpointConfig because "
                        f"the endpoint has multiple models: {', '.join(current_model_names)}"
                    )
                model_name = current_model_names[0]
            else:
                self._model_names = [model_name]

            production_variants = [
                production_variant(
                    model_name,
                    instance_type,
                    initial_instance_count=initial_instance_count,
                    accelerator_type=accelerator_type,
                )
            ]

        current_endpoint_config_name = self._get_endpoint_config_name()
        new_endpoint_config_name = name_from_base(current_endpoint_config_name)
        self.sagemaker_session.create_endpoint_config_from_existing(
            current_endpoint_config_name,
            new_endpoint_config_name,
            new_tags=tags,
            new_kms_key=kms_key,
            new_data_capture_config_dict=data_capture_config_dict,
            new_production_variants=production_variants,
        )
        self.sagemaker_session.update_endpoint(
            self.endpoint_name, new_endpoint_config_name, wait=wait
        )
        self._endpoint_config_name = new_endpoint_config_name

    def delete_endpoint(self, delete_endpoint_config: bool = True) -> None:
        """Delete the endpoint, and by default its endpoint configuration."""
        if delete_endpoint_config:
            self.sagemaker_session.delete_endpoint_config(self._get_endpoint_config_name())
        self.sagemaker_session.delete_endpoint(self.endpoint_name)

    def delete_model(self) -> None:
        """Delete the models behind the endpoint.

        Raises:
            ValueError: If any model could not be deleted.
        """
        failed_models = []
        for model_name in self._get_model_names():
            try:
                self.sagemaker_session.delete_model(model_name)
            except ClientError as e:
                logger.warning(f"Failed to delete model {model_name}: {e}")
                failed_models.append(model_name)

        if failed_models:
            raise ValueError(
                "One or more models cannot be deleted, please retry. \n"
                f"Failed models: {', '.join(failed_models)}"
            )

    def enable_data_capture(self) -> None:
        """Enable data capture on the endpoint with default settings."""
        from .model_monitor import DataCaptureConfig

        self.update_data_capture_config(
            DataCaptureConfig(enable_capture=True, sagemaker_session=self.sagemaker_session)
        )

    def disable_data_capture(self) -> None:
        """Disable data capture on the endpoint."""
        from .model_monitor import DataCaptureConfig

        self.update_data_capture_config(
            DataCaptureConfig(enable_capture=False, sagemaker_session=self.sagemaker_session)
        )

    def update_data_capture_config(self, data_capture_config: DataCaptureConfig | None = None) -> None:
        """Switch the endpoint to a copy of its configuration with new data capture settings."""
        endpoint_desc = self.sagemaker_session.describe_endpoint(self.endpoint_name)
        new_config_name = name_from_base(self.endpoint_name)

        data_capture_config_dict = None
        if data_capture_config is not None:
            data_capture_config_dict = data_capture_config._to_request_dict()

        self.sagemaker_session.create_endpoint_config_from_existing(
            existing_config_name=endpoint_desc["EndpointConfigName"],
            new_config_name=new_config_name,
            new_data_capture_config_dict=data_capture_config_dict,
        )
        self.sagemaker_session.update_endpoint(self.endpoint_name, new_config_name)
        self._endpoint_config_name = new_config_name

    def list_monitors(self) -> list[ModelMonitor]:
        """Return the monitors attached to this endpoint's monitoring schedules."""
        from .model_monitor import DefaultModelMonitor, ModelMonitor

        schedules = self.sagemaker_session.list_monitoring_schedules(
            endpoint_name=self.endpoint_name
        )["MonitoringScheduleSummaries"]
        if not schedules:
            logger.info(f"No monitors found for endpoint. endpoint: {self.endpoint_name}")
            return []

        monitors: list[ModelMonitor] = []
        for schedule in schedules:
            schedule_name = schedule["MonitoringScheduleName"]
            schedule_desc = self.sagemaker_session.describe_monitoring_schedule(schedule_name)
            image_uri = schedule_desc["MonitoringScheduleConfig"]["MonitoringJobDefinition"][
                "MonitoringAppSpecification"
            ]["ImageUri"]

            if DefaultModelMonitor.is_default_image(image_uri):
                monitors.append(
                    DefaultModelMonitor.attach(schedule_name, sagemaker_session=self.sagemaker_session)
                )
            else:
                monitors.append(
                    ModelMonitor.attach(schedule_name, sagemaker_session=self.sagemaker_session)
                )
        return monitors

    def _get_endpoint_config_name(self) -> str:
        if self._endpoint_config_name is None:
            endpoint_desc = self.sagemaker_session.describe_endpoint(self.endpoint_name)
            self._endpoint_config_name = endpoint_desc["EndpointConfigName"]
        return self._endpoint_config_name

    def _get_model_names(self) -> list[str]:
        if self._model_names is None:
            endpoint_config = self.sagemaker_session.describe_endpoint_config(
                self._get_endpoint_config_name()
            )
            self._model_names = [v["ModelName"] for v in endpoint_config["ProductionVariants"]]
        return self._model_names
