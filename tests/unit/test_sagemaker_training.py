"""Tests for SageMaker training job management."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from aws_toolkit.aws.exceptions import SageMakerError
from aws_toolkit.config import Settings
from aws_toolkit.sagemaker.models import TrainingJobConfig
from aws_toolkit.sagemaker.training import SageMakerTrainingService


class TestSageMakerTrainingService:
    """Test suite for SageMakerTrainingService."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> SageMakerTrainingService:
        """Fixture providing a SageMakerTrainingService with mocked client."""
        return SageMakerTrainingService(settings=settings, client=mock_client)

    @pytest.fixture
    def config(self) -> TrainingJobConfig:
        """Fixture providing a minimal training job config."""
        return TrainingJobConfig(
            job_name="xgb-churn-001",
            role_arn="arn:aws:iam::123456789012:role/SageMakerRole",
            training_image="683313688378.dkr.ecr.us-east-1.amazonaws.com/sagemaker-xgboost:1.7-1",
        )

    @pytest.mark.asyncio
    async def test_create_training_job_minimal(
        self, service: SageMakerTrainingService, mock_client: Mock, config: TrainingJobConfig
    ) -> None:
        """Test the request without channels or VPC."""
        mock_client.call.return_value = {"TrainingJobArn": "arn:training-job"}

        arn = await service.create_training_job(config)

        assert arn == "arn:training-job"
        kwargs = mock_client.call.call_args.kwargs
        assert mock_client.call.call_args.args == ("create_training_job",)
        assert "InputDataConfig" not in kwargs
        assert "VpcConfig" not in kwargs
        assert kwargs["OutputDataConfig"] == {"S3OutputPath": ""}
        assert kwargs["HyperParameters"] == {}
        assert kwargs["ResourceConfig"] == {
            "InstanceType": "ml.m5.xlarge",
            "InstanceCount": 1,
            "VolumeSizeInGB": 50,
        }
        assert kwargs["StoppingCondition"] == {"MaxRuntimeInSeconds": 86400}

    @pytest.mark.asyncio
    async def test_create_training_job_full(
        self, service: SageMakerTrainingService, mock_client: Mock, config: TrainingJobConfig
    ) -> None:
        """Test channels, hyperparameters and VPC configuration."""
        mock_client.call.return_value = {"TrainingJobArn": "arn:training-job"}
        config = config.model_copy(
            update={
                "s3_train_data_uri": "s3://bucket/train/",
                "s3_validation_data_uri": "s3://bucket/validation/",
                "s3_output_path": "s3://bucket/output/",
                "hyper_parameters": {"num_round": "100"},
                "subnet_id": "subnet-1",
                "security_group_id": "sg-1",
            }
        )

        await service.create_training_job(config)

        kwargs = mock_client.call.call_args.kwargs
        channels = kwargs["InputDataConfig"]
        assert [c["ChannelName"] for c in channels] == ["train", "validation"]
        assert channels[0]["DataSource"]["S3DataSource"] == {
            "S3DataType": "S3Prefix",
            "S3Uri": "s3://bucket/train/",
            "S3DataDistributionType": "FullyReplicated",
        }
        assert channels[0]["ContentType"] == "text/csv"
        assert channels[0]["InputMode"] == "File"
        assert kwargs["HyperParameters"] == {"num_round": "100"}
        assert kwargs["OutputDataConfig"] == {"S3OutputPath": "s3://bucket/output/"}
        assert kwargs["VpcConfig"] == {"Subnets": ["subnet-1"], "SecurityGroupIds": ["sg-1"]}

    @pytest.mark.asyncio
    async def test_vpc_needs_both_values(
        self, service: SageMakerTrainingService, mock_client: Mock, config: TrainingJobConfig
    ) -> None:
        """Test that a subnet without security group sends no VPC config."""
        mock_client.call.return_value = {"TrainingJobArn": "arn:training-job"}

        await service.create_training_job(config.model_copy(update={"subnet_id": "subnet-1"}))

        assert "VpcConfig" not in mock_client.call.call_args.kwargs

    @pytest.mark.asyncio
    async def test_create_training_job_error(
        self, service: SageMakerTrainingService, mock_client: Mock, config: TrainingJobConfig
    ) -> None:
        """Test that service errors propagate."""
        mock_client.call.side_effect = SageMakerError("ResourceLimitExceeded", service="sagemaker")

        with pytest.raises(SageMakerError):
            await service.create_training_job(config)

    @pytest.mark.asyncio
    async def test_wait_for_training_job(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test polling until Completed."""
        mock_client.call.side_effect = [
            {"TrainingJobStatus": "InProgress"},
            {"TrainingJobStatus": "InProgress"},
            {"TrainingJobStatus": "Completed"},
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            status = await service.wait_for_training_job("xgb-churn-001")

        assert status == "Completed"
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_wait_for_training_job_timeout(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test that a timeout returns the last status without a trailing sleep."""
        mock_client.call.return_value = {"TrainingJobStatus": "InProgress"}

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            status = await service.wait_for_training_job(
                "xgb-churn-001", max_wait_minutes=1, poll_interval=20
            )

        assert status == "InProgress"
        assert mock_client.call.await_count == 3
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_list_training_jobs(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test the list request with a name filter."""
        mock_client.call.return_value = {"TrainingJobSummaries": [{"TrainingJobName": "xgb-1"}]}

        jobs = await service.list_training_jobs(name_contains="xgb", max_results=5)

        assert jobs == [{"TrainingJobName": "xgb-1"}]
        mock_client.call.assert_awaited_once_with(
            "list_training_jobs",
            MaxResults=5,
            SortBy="CreationTime",
            SortOrder="Descending",
            NameContains="xgb",
        )

    @pytest.mark.asyncio
    async def test_get_model_artifact_path(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test the artifact path of a completed job."""
        mock_client.call.return_value = {
            "TrainingJobStatus": "Completed",
            "ModelArtifacts": {"S3ModelArtifacts": "s3://bucket/output/model.tar.gz"},
        }

        assert await service.get_model_artifact_path("xgb-1") == "s3://bucket/output/model.tar.gz"

    @pytest.mark.asyncio
    async def test_get_model_artifact_path_not_completed(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test that unfinished jobs have no artifact path."""
        mock_client.call.return_value = {"TrainingJobStatus": "InProgress"}

        assert await service.get_model_artifact_path("xgb-1") is None

    @pytest.mark.asyncio
    async def test_stop_training_job(
        self, service: SageMakerTrainingService, mock_client: Mock
    ) -> None:
        """Test the stop request."""
        await service.stop_training_job("xgb-1")

        mock_client.call.assert_awaited_once_with("stop_training_job", TrainingJobName="xgb-1")

    @pytest.mark.asyncio
    async def test_print_training_job_details(
        self,
        service: SageMakerTrainingService,
        mock_client: Mock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test the printed summary of a failed job."""
        mock_client.call.return_value = {
            "TrainingJobName": "xgb-1",
            "TrainingJobStatus": "Failed",
            "FailureReason": "AlgorithmError",
        }

        await service.print_training_job_details("xgb-1")

        out = capsys.readouterr().out
        assert "Name: xgb-1" in out
        assert "Failure reason: AlgorithmError" in out
