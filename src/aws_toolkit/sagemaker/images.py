"""SageMaker container image URIs.

AWS publishes framework images (Deep Learning Containers) and built-in
algorithm images from per-region ECR accounts. This module maps a region to
the right account and ECR domain and assembles the image URIs, so no AWS call
is needed.
"""

import logging
from typing import Final

from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)

BUILTIN_ALGORITHM_ACCOUNTS: Final[dict[str, str]] = {
    "us-east-1": "811284229777",
    "us-east-2": "825641698319",
    "us-west-1": "632365934929",
    "us-west-2": "433757028032",
    "eu-west-1": "685385470294",
    "eu-west-2": "644912444149",
    "eu-central-1": "813361260812",
    "ap-northeast-1": "501404015308",
    "ap-northeast-2": "306986355934",
    "ap-southeast-1": "475088953585",
    "ap-southeast-2": "544295431143",
    "ap-south-1": "991648021394",
    "cn-north-1": "390948362332",
    "cn-northwest-1": "387376663083",
}
DEFAULT_BUILTIN_ALGORITHM_ACCOUNT: Final = "811284229777"

DLC_ACCOUNT: Final = "763104351884"
DLC_ACCOUNT_CHINA: Final = "727897471807"

MODEL_MONITOR_ACCOUNTS: Final[dict[str, str]] = {
    "us-east-1": "156813124566",
    "us-east-2": "777275614652",
    "us-west-1": "890145073186",
    "us-west-2": "159807026194",
    "eu-west-1": "468650794304",
    "eu-west-2": "749857270468",
    "eu-central-1": "048819808253",
    "ap-northeast-1": "574779866223",
    "ap-northeast-2": "709848358524",
    "ap-southeast-1": "245545462676",
    "ap-southeast-2": "563025443158",
    "ap-south-1": "126357580389",
    "cn-north-1": "453000072557",
    "cn-northwest-1": "453252182341",
}
DEFAULT_MODEL_MONITOR_ACCOUNT: Final = "156813124566"


def ecr_domain(region: str) -> str:
    """ECR registry domain of a region; China regions use ``.com.cn``.

    Example:
        >>> ecr_domain("cn-north-1")
        'dkr.ecr.cn-north-1.amazonaws.com.cn'
    """
    suffix = ".com.cn" if region.startswith("cn-") else ".com"
    return f"dkr.ecr.{region}.amazonaws{suffix}"


def dlc_account(region: str) -> str:
    """Account publishing Deep Learning Containers in a region."""
    return DLC_ACCOUNT_CHINA if region.startswith("cn-") else DLC_ACCOUNT


def builtin_algorithm_account(region: str) -> str:
    """Account publishing built-in algorithm images in a region."""
    return BUILTIN_ALGORITHM_ACCOUNTS.get(region, DEFAULT_BUILTIN_ALGORITHM_ACCOUNT)


def model_monitor_image(region: str) -> str:
    """URI of the Model Monitor analyzer image in a region."""
    account = MODEL_MONITOR_ACCOUNTS.get(region, DEFAULT_MODEL_MONITOR_ACCOUNT)
    return f"{account}.{ecr_domain(region)}/sagemaker-model-monitor-analyzer"


def _device(use_gpu: bool) -> str:
    return "gpu" if use_gpu else "cpu"


class SageMakerImageService:
    """Builds training and inference image URIs for the configured region.

    Example:
        >>> images = SageMakerImageService()
        >>> images.get_pytorch_training_image("2.0.1", "py310", use_gpu=True)
        '763104351884.dkr.ecr.us-east-1.amazonaws.com/pytorch-training:2.0.1-gpu-py310'
    """

    def __init__(self, settings: Settings | None = None, region: str | None = None) -> None:
        """Initialize image service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            region: Region override. Defaults to the configured region.
        """
        self.settings = settings or get_settings()
        self.region = region or self.settings.aws_region

    def _dlc_uri(self, repository: str, tag: str) -> str:
        return f"{self.get_dlc_account_id()}.{ecr_domain(self.region)}/{repository}:{tag}"

    def _builtin_uri(self, repository: str, tag: str) -> str:
        return (
            f"{self.get_builtin_algorithm_account_id()}.{ecr_domain(self.region)}/{repository}:{tag}"
        )

    # =========================================================================
    # Framework Images
    # =========================================================================

    def get_pytorch_training_image(self, version: str, python_version: str, use_gpu: bool) -> str:
        return self._dlc_uri("pytorch-training", f"{version}-{_device(use_gpu)}-{python_version}")

    def get_pytorch_inference_image(
        self, version: str, python_version: str, use_gpu: bool
    ) -> str:
        return self._dlc_uri("pytorch-inference", f"{version}-{_device(use_gpu)}-{python_version}")

    def get_tensorflow_training_image(
        self, version: str, python_version: str, use_gpu: bool
    ) -> str:
        return self._dlc_uri(
            "tensorflow-training", f"{version}-{_device(use_gpu)}-{python_version}"
        )

    def get_tensorflow_inference_image(
        self, version: str, python_version: str, use_gpu: bool
    ) -> str:
        return self._dlc_uri(
            "tensorflow-inference", f"{version}-{_device(use_gpu)}-{python_version}"
        )

    def get_mxnet_training_image(self, version: str, python_version: str, use_gpu: bool) -> str:
        return self._dlc_uri("mxnet-training", f"{version}-{_device(use_gpu)}-{python_version}")

    def get_mxnet_inference_image(self, version: str, python_version: str, use_gpu: bool) -> str:
        return self._dlc_uri("mxnet-inference", f"{version}-{_device(use_gpu)}-{python_version}")

    def get_huggingface_training_image(
        self,
        transformers_version: str,
        pytorch_version: str,
        python_version: str,
        use_gpu: bool,
    ) -> str:
        """HuggingFace PyTorch training image.

        Tag format: ``{pytorch}-transformers{transformers}-{device}-{python}``.
        """
        tag = (
            f"{pytorch_version}-transformers{transformers_version}"
            f"-{_device(use_gpu)}-{python_version}"
        )
        return self._dlc_uri("huggingface-pytorch-training", tag)

    def get_huggingface_inference_image(
        self,
        transformers_version: str,
        pytorch_version: str,
        python_version: str,
        use_gpu: bool,
    ) -> str:
        """HuggingFace PyTorch inference image, same tag format as training."""
        tag = (
            f"{pytorch_version}-transformers{transformers_version}"
            f"-{_device(use_gpu)}-{python_version}"
        )
        return self._dlc_uri("huggingface-pytorch-inference", tag)

    # =========================================================================
    # Built-in Algorithm Images
    # =========================================================================

    def get_xgboost_image(self, version: str) -> str:
        """XGBoost image, e.g. version '1.7-1'."""
        return self._builtin_uri("sagemaker-xgboost", version)

    def get_sklearn_image(self, version: str, python_version: str) -> str:
        return self._builtin_uri("sagemaker-scikit-learn", f"{version}-{python_version}")

    # =========================================================================
    # Generic
    # =========================================================================

    def get_dlc_image(self, framework: str, job_type: str, tag: str) -> str:
        """Any DLC image, repository ``{framework}-{job_type}``."""
        return self._dlc_uri(f"{framework}-{job_type}", tag)

    def get_builtin_algorithm_image(self, algorithm: str, tag: str) -> str:
        """Any built-in algorithm image, repository ``sagemaker-{algorithm}``."""
        return self._builtin_uri(f"sagemaker-{algorithm}", tag)

    def get_dlc_account_id(self) -> str:
        return dlc_account(self.region)

    def get_builtin_algorithm_account_id(self) -> str:
        return builtin_algorithm_account(self.region)

    def print_available_images(self) -> None:
        """Print the accounts and a few sample image URIs for the region."""
        print("==================== SageMaker Images ====================")
        print(f"Region: {self.region}")
        print(f"DLC account: {self.get_dlc_account_id()}")
        print(f"Built-in algorithm account: {self.get_builtin_algorithm_account_id()}")
        print()
        print("Sample image URIs:")
        print(f"PyTorch training (GPU): {self.get_pytorch_training_image('2.0.1', 'py310', True)}")
        print(
            f"PyTorch inference (CPU): {self.get_pytorch_inference_image('2.0.1', 'py310', False)}"
        )
        print(f"TensorFlow training: {self.get_tensorflow_training_image('2.13.0', 'py310', True)}")
        print(f"XGBoost: {self.get_xgboost_image('1.7-1')}")
        print("===========================================================")
