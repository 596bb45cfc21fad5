"""EC2 instance type discovery.

This module wraps DescribeInstanceTypes with pagination and provides typed
views of instance type capabilities (CPU, memory, GPU, network) together with
the common searches: by family, architecture, vCPU or memory range, GPU
support and free-tier eligibility.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import INSTANCE_TYPES_PAGE_SIZE

logger: Final = logging.getLogger(__name__)

GPU_ARCHITECTURES: Final[tuple[str, ...]] = ("x86_64", "arm64")


class GpuInfo(BaseModel):
    """A GPU model attached to an instance type."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    manufacturer: str | None = None
    count: int = 0
    memory_mib: int = 0

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.name} x{self.count} ({self.memory_mib} MiB)"


class InstanceTypeInfo(BaseModel):
    """Capabilities of an EC2 instance type.

    Attributes:
        instance_type: Instance type name (e.g., 'g5.xlarge').
        vcpus: Default vCPU count.
        memory_mib: Memory in MiB.
        gpu_supported: True if the type has at least one GPU.
        gpus: Attached GPU models.
        network_performance: Network performance description.
        max_network_interfaces: Maximum ENIs.
        ipv4_per_interface: IPv4 addresses per ENI.
        ebs_optimized_supported: True unless EBS optimization is 'unsupported'.
        hypervisor: Hypervisor ('nitro', 'xen'), None for bare metal.
        processor_architecture: First supported architecture.
        supported_usage_classes: e.g., ['on-demand', 'spot'].
        bare_metal: Bare metal type.
        burstable: Burstable performance (T family).
        dedicated_hosts: Dedicated hosts supported.
        free_tier_eligible: Free-tier eligible.
    """

    model_config = ConfigDict(frozen=True)

    instance_type: str
    vcpus: int = 0
    memory_mib: int = 0
    gpu_supported: bool = False
    gpus: list[GpuInfo] = Field(default_factory=list)
    network_performance: str = "unknown"
    max_network_interfaces: int = 0
    ipv4_per_interface: int = 0
    ebs_optimized_supported: bool = False
    hypervisor: str | None = None
    processor_architecture: str = "unknown"
    supported_usage_classes: list[str] = Field(default_factory=list)
    bare_metal: bool = False
    burstable: bool = False
    dedicated_hosts: bool = False
    free_tier_eligible: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InstanceTypeInfo":
        """Build from a DescribeInstanceTypes ``InstanceTypes`` entry."""
        gpus = [
            GpuInfo(
                name=gpu.get("Name"),
                manufacturer=gpu.get("Manufacturer"),
                count=gpu.get("Count", 0),
                memory_mib=gpu.get("MemoryInfo", {}).get("SizeInMiB", 0),
            )
            for gpu in data.get("GpuInfo", {}).get("Gpus", [])
        ]
        network = data.get("NetworkInfo", {})
        architectures = data.get("ProcessorInfo", {}).get("SupportedArchitectures", [])
        ebs_support = data.get("EbsInfo", {}).get("EbsOptimizedSupport")

        return cls(
            instance_type=data["InstanceType"],
            vcpus=data.get("VCpuInfo", {}).get("DefaultVCpus", 0),
            memory_mib=data.get("MemoryInfo", {}).get("SizeInMiB", 0),
            gpu_supported=bool(gpus),
            gpus=gpus,
            network_performance=network.get("NetworkPerformance", "unknown"),
            max_network_interfaces=network.get("MaximumNetworkInterfaces", 0),
            ipv4_per_interface=network.get("Ipv4AddressesPerInterface", 0),
            ebs_optimized_supported=(
                ebs_support is not None and ebs_support.lower() != "unsupported"
            ),
            hypervisor=data.get("Hypervisor"),
            processor_architecture=architectures[0] if architectures else "unknown",
            supported_usage_classes=data.get("SupportedUsageClasses", []),
            bare_metal=data.get("BareMetal", False),
            burstable=data.get("BurstablePerformanceSupported", False),
            dedicated_hosts=data.get("DedicatedHostsSupported", False),
            free_tier_eligible=data.get("FreeTierEligible", False),
        )

    @property
    def memory_gib(self) -> float:
        """Memory in GiB."""
        return self.memory_mib / 1024

    @property
    def total_gpu_count(self) -> int:
        """Number of GPUs across all GPU models."""
        return sum(gpu.count for gpu in self.gpus)

    @property
    def total_gpu_memory_mib(self) -> int:
        """Total GPU memory in MiB across all GPUs."""
        return sum(gpu.count * gpu.memory_mib for gpu in self.gpus)

    def __str__(self) -> str:
        lines = [
            f"Instance type: {self.instance_type}",
            f"  CPU: {self.vcpus} vCPU ({self.processor_architecture})",
            f"  Memory: {self.memory_gib:.1f} GiB ({self.memory_mib} MiB)",
        ]
        if self.gpu_supported:
            lines.append(
                f"  GPU: {self.total_gpu_count} (total memory: {self.total_gpu_memory_mib} MiB)"
            )
            lines.extend(f"    - {gpu}" for gpu in self.gpus)
        else:
            lines.append("  GPU: not supported")
        lines.append(
            f"  Network: {self.network_performance} "
            f"(max {self.max_network_interfaces} interfaces)"
        )
        lines.append(f"  EBS optimized: {'yes' if self.ebs_optimized_supported else 'no'}")
        lines.append(f"  Free tier: {'yes' if self.free_tier_eligible else 'no'}")
        return "\n".join(lines)


class Ec2InstanceTypeService:
    """Service for querying EC2 instance type capabilities.

    Listing calls page through DescribeInstanceTypes 100 results at a time.
    Server-side filters are used where EC2 supports them; range and GPU
    checks are applied client-side.

    Example:
        >>> service = Ec2InstanceTypeService()
        >>> gpu_types = await service.list_gpu_instance_types()
        >>> small = await service.find_instance_types(min_vcpus=2, max_vcpus=4)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        """Initialize instance type service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            client: Optional pre-configured EC2 AWSClientWrapper.
        """
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("ec2", settings=self.settings)
        logger.info(f"Initialized Ec2InstanceTypeService for region {self.settings.aws_region}")

    async def get_instance_type_info(self, instance_type: str) -> InstanceTypeInfo | None:
        """Describe a single instance type, or None if EC2 returns nothing."""
        results = await self.get_instance_type_info_batch([instance_type])
        return results[0] if results else None

    async def get_instance_type_info_batch(
        self, instance_types: Sequence[str]
    ) -> list[InstanceTypeInfo]:
        """Describe several instance types in one call."""
        try:
            response = await self.client.call(
                "describe_instance_types", InstanceTypes=list(instance_types)
            )
        except Exception as e:
            logger.error(f"Failed to describe instance types {instance_types}: {e}")
            raise

        return [InstanceTypeInfo.from_api(item) for item in response.get("InstanceTypes", [])]

    async def list_instance_types(self, family: str | None = None) -> list[InstanceTypeInfo]:
        """List instance types, optionally restricted to a family.

        Args:
            family: Family prefix such as 'g5' or 'm7i'. None or empty lists all.

        Returns:
            Matching instance types.
        """
        if not family:
            results = await self._describe_all()
            logger.info(f"Listed {len(results)} instance type(s)")
            return results

        results = await self._describe_all(
            filters=[{"Name": "instance-type", "Values": [f"{family}.*"]}]
        )
        logger.info(f"Family {family} has {len(results)} instance type(s)")
        return results

    async def list_gpu_instance_types(self) -> list[InstanceTypeInfo]:
        """List instance types with at least one GPU."""
        results = await self._describe_all(
            filters=[
                {"Name": "processor-info.supported-architecture", "Values": list(GPU_ARCHITECTURES)}
            ],
            predicate=lambda info: info.gpu_supported,
        )
        logger.info(f"Found {len(results)} GPU instance type(s)")
        return results

    async def list_by_vcpu_range(self, min_vcpus: int, max_vcpus: int) -> list[InstanceTypeInfo]:
        """List instance types whose default vCPU count is within [min, max]."""
        return await self._describe_all(
            predicate=lambda info: min_vcpus <= info.vcpus <= max_vcpus
        )

    async def list_by_memory_range(
        self, min_memory_gib: float, max_memory_gib: float
    ) -> list[InstanceTypeInfo]:
        """List instance types whose memory is within [min, max] GiB."""
        min_mib = int(min_memory_gib * 1024)
        max_mib = int(max_memory_gib * 1024)
        return await self._describe_all(
            predicate=lambda info: min_mib <= info.memory_mib <= max_mib
        )

    async def list_free_tier_instance_types(self) -> list[InstanceTypeInfo]:
        """List free-tier eligible instance types."""
        results = await self._describe_all(
            filters=[{"Name": "free-tier-eligible", "Values": ["true"]}]
        )
        logger.info(f"Found {len(results)} free-tier instance type(s)")
        return results

    async def list_by_architecture(self, architecture: str) -> list[InstanceTypeInfo]:
        """List instance types supporting an architecture ('x86_64', 'arm64', ...)."""
        results = await self._describe_all(
            filters=[{"Name": "processor-info.supported-architecture", "Values": [architecture]}]
        )
        logger.info(f"Architecture {architecture} has {len(results)} instance type(s)")
        return results

    async def find_instance_types(
        self,
        min_vcpus: int | None = None,
        max_vcpus: int | None = None,
        min_memory_gib: float | None = None,
        max_memory_gib: float | None = None,
        require_gpu: bool = False,
        architecture: str | None = None,
    ) -> list[InstanceTypeInfo]:
        """Search instance types by combined criteria.

        Every bound is optional; None or 0 leaves that side open.

        Args:
            min_vcpus: Minimum vCPUs.
            max_vcpus: Maximum vCPUs.
            min_memory_gib: Minimum memory in GiB.
            max_memory_gib: Maximum memory in GiB. A 0 or None bound is unbounded.
            require_gpu: Only GPU instance types. Defaults to False.
            architecture: Restrict to one architecture (server-side filter).

        Returns:
            Instance types matching every given criterion.
        """

        def matches(info: InstanceTypeInfo) -> bool:
            if min_vcpus and info.vcpus < min_vcpus:
                return False
            if max_vcpus and info.vcpus > max_vcpus:
                return False
            if min_memory_gib and info.memory_gib < min_memory_gib:
                return False
            if max_memory_gib and info.memory_gib > max_memory_gib:
                return False
            return not (require_gpu and not info.gpu_supported)

        filters = None
        if architecture:
            filters = [{"Name": "processor-info.supported-architecture", "Values": [architecture]}]

        results = await self._describe_all(filters=filters, predicate=matches)
        logger.info(f"Found {len(results)} instance type(s) matching criteria")
        return results

    async def _describe_all(
        self,
        filters: list[dict[str, Any]] | None = None,
        predicate: Callable[[InstanceTypeInfo], bool] | None = None,
    ) -> list[InstanceTypeInfo]:
        """Page through DescribeInstanceTypes, keeping items matching predicate."""
        kwargs: dict[str, Any] = {"MaxResults": INSTANCE_TYPES_PAGE_SIZE}
        if filters:
            kwargs["Filters"] = filters

        results: list[InstanceTypeInfo] = []
        try:
            while True:
                response = await self.client.call("describe_instance_types", **kwargs)
                for item in response.get("InstanceTypes", []):
                    info = InstanceTypeInfo.from_api(item)
                    if predicate is None or predicate(info):
                        results.append(info)

                next_token = response.get("NextToken")
                if not next_token:
                    break
                kwargs["NextToken"] = next_token

        except Exception as e:
            logger.error(f"Failed to describe instance types: {e}")
            raise

        return results

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
