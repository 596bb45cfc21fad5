"""Request configuration models for SageMaker training, hosting and monitoring.

These models carry every parameter the SageMaker services need to build their
API requests. Required fields are validated on construction; everything else
has the defaults listed on each model.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HOURLY_SCHEDULE = "cron(0 * ? * * *)"


def _require_non_empty(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("must not be empty")
    return v


class TrainingJobConfig(BaseModel):
    """Parameters of a CreateTrainingJob request.

    Attributes:
        job_name: Training job name, unique within the account and region.
        role_arn: SageMaker execution role ARN.
        training_image: Training container image URI, see SageMakerImageService.
        instance_type: Training instance type. Defaults to 'ml.m5.xlarge'.
        instance_count: Number of training instances. Defaults to 1.
        volume_size_gb: Storage volume per instance. Defaults to 50.
        max_runtime_seconds: Stopping condition. Defaults to 86400 (24 hours).
        s3_train_data_uri: S3 prefix of the 'train' channel.
        s3_validation_data_uri: S3 prefix of the 'validation' channel.
        input_content_type: Content type of both channels. Defaults to 'text/csv'.
        s3_output_path: S3 prefix for model artifacts.
        hyper_parameters: Algorithm hyperparameters (string values).
        subnet_id: Subnet for VPC mode; used only with security_group_id.
        security_group_id: Security group for VPC mode.

    Example:
        >>> config = TrainingJobConfig(
        ...     job_name="xgb-churn-001",
        ...     role_arn="arn:aws:iam::123456789012:role/SageMakerRole",
        ...     training_image=image_uri,
        ...     s3_train_data_uri="s3://bucket/train/",
        ...     s3_output_path="s3://bucket/output/",
        ...     hyper_parameters={"num_round": "100"},
        ... )
    """

    model_config = ConfigDict(frozen=True)

    job_name: str
    role_arn: str
    training_image: str
    instance_type: str = "ml.m5.xlarge"
    instance_count: int = Field(default=1, ge=1)
    volume_size_gb: int = Field(default=50, ge=1)
    max_runtime_seconds: int = Field(default=86400, ge=1)
    s3_train_data_uri: str | None = None
    s3_validation_data_uri: str | None = None
    input_content_type: str = "text/csv"
    s3_output_path: str | None = None
    hyper_parameters: dict[str, str] = Field(default_factory=dict)
    subnet_id: str | None = None
    security_group_id: str | None = None

    @field_validator("job_name", "role_arn", "training_image")
    @classmethod
    def check_required(cls, v: str) -> str:
        """Reject empty required values."""
        return _require_non_empty(v)


class EndpointConfig(BaseModel):
    """Parameters of the CreateModel, CreateEndpointConfig and CreateEndpoint requests.

    ``endpoint_config_name`` defaults to ``{model_name}-config`` and
    ``endpoint_name`` to ``{model_name}-endpoint``.

    Example:
        >>> config = EndpointConfig(
        ...     model_name="churn-model",
        ...     role_arn=role_arn,
        ...     inference_image=image_uri,
        ...     model_data_url="s3://bucket/output/job/output/model.tar.gz",
        ... ).with_data_capture("s3://bucket/capture/", 50)
        >>> config.endpoint_name
        'churn-model-endpoint'
    """

    model_config = ConfigDict(frozen=True)

    model_name: str
    endpoint_config_name: str = ""
    endpoint_name: str = ""
    role_arn: str | None = None
    inference_image: str | None = None
    model_data_url: str | None = None
    instance_type: str = "ml.m5.xlarge"
    initial_instance_count: int = Field(default=1, ge=1)

    enable_auto_scaling: bool = False
    min_capacity: int = Field(default=1, ge=1)
    max_capacity: int = Field(default=4, ge=1)
    target_invocations_per_instance: int = Field(default=1000, ge=1)

    enable_data_capture: bool = False
    data_capture_s3_uri: str | None = None
    data_capture_percentage: int = Field(default=100, ge=0, le=100)

    environment: dict[str, str] = Field(default_factory=dict)

    @field_validator("model_name")
    @classmethod
    def check_model_name(cls, v: str) -> str:
        return _require_non_empty(v)

    @model_validator(mode="after")
    def fill_derived_names(self) -> "EndpointConfig":
        """Derive config and endpoint names from the model name when unset."""
        if not self.endpoint_config_name:
            object.__setattr__(self, "endpoint_config_name", f"{self.model_name}-config")
        if not self.endpoint_name:
            object.__setattr__(self, "endpoint_name", f"{self.model_name}-endpoint")
        return self

    def with_auto_scaling(
        self, min_capacity: int, max_capacity: int, target_invocations: int
    ) -> "EndpointConfig":
        """Return a validated copy with auto scaling enabled."""
        return self.model_validate(
            {
                **self.model_dump(),
                "enable_auto_scaling": True,
                "min_capacity": min_capacity,
                "max_capacity": max_capacity,
                "target_invocations_per_instance": target_invocations,
            }
        )

    def with_data_capture(self, s3_uri: str, percentage: int = 100) -> "EndpointConfig":
        """Return a validated copy with request/response capture to ``s3_uri`` enabled."""
        return self.model_validate(
            {
                **self.model_dump(),
                "enable_data_capture": True,
                "data_capture_s3_uri": s3_uri,
                "data_capture_percentage": percentage,
            }
        )


class MonitoringType(str, Enum):
    """Kind of model monitor."""

    DATA_QUALITY = "DATA_QUALITY"
    MODEL_QUALITY = "MODEL_QUALITY"
    MODEL_BIAS = "MODEL_BIAS"
    MODEL_EXPLAINABILITY = "MODEL_EXPLAINABILITY"


class MonitoringConfig(BaseModel):
    """Parameters of a CreateMonitoringSchedule request.

    Attributes:
        monitoring_schedule_name: Schedule name.
        endpoint_name: Monitored endpoint; data capture must be enabled on it.
        monitoring_type: Defaults to DATA_QUALITY.
        role_arn: Execution role of the monitoring jobs.
        instance_type: Defaults to 'ml.m5.xlarge'.
        instance_count: Defaults to 1.
        volume_size_gb: Defaults to 20.
        baseline_dataset_uri: Dataset the baseline was computed from.
        baseline_constraints_uri: constraints.json from the baseline job.
        baseline_statistics_uri: statistics.json from the baseline job.
        s3_output_path: S3 prefix for monitoring reports.
        schedule_expression: Cron expression. Defaults to hourly.
        subnet_id: Subnet for VPC mode.
        security_group_id: Security group for VPC mode.
    """

    model_config = ConfigDict(frozen=True)

    monitoring_schedule_name: str
    endpoint_name: str
    monitoring_type: MonitoringType = MonitoringType.DATA_QUALITY
    role_arn: str | None = None
    instance_type: str = "ml.m5.xlarge"
    instance_count: int = Field(default=1, ge=1)
    volume_size_gb: int = Field(default=20, ge=1)
    baseline_dataset_uri: str | None = None
    baseline_constraints_uri: str | None = None
    baseline_statistics_uri: str | None = None
    s3_output_path: str | None = None
    schedule_expression: str = HOURLY_SCHEDULE
    subnet_id: str | None = None
    security_group_id: str | None = None

    @field_validator("monitoring_schedule_name", "endpoint_name")
    @classmethod
    def check_required(cls, v: str) -> str:
        return _require_non_empty(v)

    @staticmethod
    def hourly_schedule() -> str:
        """Cron expression running at the top of every hour."""
        return HOURLY_SCHEDULE

    @staticmethod
    def daily_schedule(hour: int) -> str:
        """Cron expression running once a day at ``hour`` UTC."""
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got {hour}")
        return f"cron(0 {hour} ? * * *)"
