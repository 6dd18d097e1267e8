"""
本机设备信息采集模块

通过传感器采集本机全部加速卡的信息，包括：
- 设备序号与 UUID
- 板卡 / 主板序列号
- 槽位号
- 链路邻接

结果组装为 MachineSnapshot，可保存到文件或发送给其他机器。
"""

import socket
import logging
from typing import List, Optional

from engine.errors import DependencyUnavailableError, UnsupportedVersionError
from engine.models import DeviceInfo
from engine.snapshot import MachineSnapshot
from engine.version import SUPPORTED_SENSOR_API_MAJOR

from .links import LinkCollector
from .sensor import SensorError

logger = logging.getLogger(__name__)


class DeviceCollector:
    """设备信息采集器"""

    def __init__(self, sensor):
        """
        初始化采集器

        Args:
            sensor: 传感器，需要实现 DeviceSensor 接口
        """
        self.sensor = sensor
        self.links = LinkCollector(sensor)

    def check_version(self) -> None:
        """
        检查传感器 API 版本

        Raises:
            DependencyUnavailableError: 无法读取版本
            UnsupportedVersionError: 主版本不兼容
        """
        try:
            major, minor = self.sensor.get_api_version()
        except SensorError as e:
            raise DependencyUnavailableError(f"Failed to read sensor API version: {e}")

        if major != SUPPORTED_SENSOR_API_MAJOR:
            raise UnsupportedVersionError(
                f"Sensor API {major}.{minor} is not supported "
                f"(expected major version {SUPPORTED_SENSOR_API_MAJOR})"
            )

    def collect(self, label: str) -> List[DeviceInfo]:
        """
        采集所有设备信息

        Args:
            label: 本机标签

        Returns:
            按序号排列的设备信息

        Raises:
            DependencyUnavailableError: 任一传感器调用失败
        """
        try:
            count = self.sensor.get_device_count()
        except SensorError as e:
            raise DependencyUnavailableError(f"Failed to read device count: {e}")

        devices = []
        for ordinal in range(count):
            devices.append(self._collect_device(label, ordinal))

        return devices

    def _collect_device(self, label: str, ordinal: int) -> DeviceInfo:
        """采集单个设备"""
        try:
            uuid = self.sensor.get_device_uuid(ordinal)
            board_serial, motherboard_serial = self.sensor.get_serials(ordinal)
            slot_id = self.sensor.get_slot_id(ordinal)
        except SensorError as e:
            raise DependencyUnavailableError(f"Failed to read device {ordinal}: {e}")

        return DeviceInfo(
            machine_label=label,
            ordinal=ordinal,
            uuid=uuid,
            board_serial=board_serial,
            motherboard_serial=motherboard_serial,
            slot_id=slot_id,
            links=self.links.collect(ordinal),
        )


def probe_local_snapshot(sensor, label: Optional[str] = None) -> MachineSnapshot:
    """
    采集本机快照

    Args:
        sensor: 传感器
        label: 本机标签，默认使用传感器提供的主机名或本机 hostname

    Returns:
        本机 MachineSnapshot（未加入任何 Context）
    """
    label = label or getattr(sensor, "hostname", None) or socket.gethostname()

    collector = DeviceCollector(sensor)
    collector.check_version()
    devices = collector.collect(label)

    link_count = sum(len(d.links) for d in devices)
    logger.info(f"Probed {len(devices)} devices with {link_count} links on {label}")
    return MachineSnapshot(label=label, devices=tuple(devices))
