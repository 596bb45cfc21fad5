"""SageMaker training, hosting, inference, monitoring and image helpers."""

from aws_toolkit.sagemaker.deployment import SageMakerDeploymentService
from aws_toolkit.sagemaker.images import SageMakerImageService
from aws_toolkit.sagemaker.inference import SageMakerInferenceService
from aws_toolkit.sagemaker.models import (
    EndpointConfig,
    MonitoringConfig,
    MonitoringType,
    TrainingJobConfig,
)
from aws_toolkit.sagemaker.monitoring import SageMakerMonitoringService
from aws_toolkit.sagemaker.training import SageMakerTrainingService

__all__ = [
    "EndpointConfig",
    "MonitoringConfig",
    "MonitoringType",
    "SageMakerDeploymentService",
    "SageMakerImageService",
    "SageMakerInferenceService",
    "SageMakerMonitoringService",
    "SageMakerTrainingService",
    "TrainingJobConfig",
]
