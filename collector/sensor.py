"""
设备传感器接口

拓扑引擎通过传感器读取本机加速卡的原始信息：
- 设备数量
- UUID
- 板卡 / 主板序列号
- 槽位号
- 链路邻接（端口、对端设备或交换机）

FixtureSensor 从 YAML/JSON 描述文件读取上述信息，用于测试和离线演练。
"""

import os
import logging
from typing import Any, Dict, List, Optional, Tuple

import yaml

from engine.snapshot import MAX_U64

logger = logging.getLogger(__name__)


class SensorError(Exception):
    """Exception raised when a sensor query fails."""
    pass


class DeviceSensor:
    """
    传感器接口

    实现类需要提供以下方法，任何失败都应抛出 SensorError。
    """

    def get_api_version(self) -> Tuple[int, int]:
        """返回传感器 API 版本 (major, minor)"""
        raise NotImplementedError

    def get_device_count(self) -> int:
        raise NotImplementedError

    def get_device_uuid(self, ordinal: int) -> int:
        raise NotImplementedError

    def get_serials(self, ordinal: int) -> Tuple[int, int]:
        """返回 (板卡序列号, 主板序列号)"""
        raise NotImplementedError

    def get_slot_id(self, ordinal: int) -> int:
        """槽位号，仅多卡载板支持，默认 0"""
        return 0

    def get_link_adjacency(self, ordinal: int) -> List[Dict[str, Any]]:
        """
        返回设备的链路列表

        每个元素形如：
            {"port": 0, "kind": "point-to-point", "peer_uuid": 2, "peer_port": 1}
            {"port": 1, "kind": "point-to-switch", "switch_id": "sw0"}
        """
        raise NotImplementedError


class FixtureSensor(DeviceSensor):
    """
    基于描述文件的传感器

    描述文件格式：
        api_version: "1.0"
        hostname: node0          # 可选
        devices:
          - uuid: 1001
            board_serial: 11
            motherboard_serial: 21
            slot_id: 0
            links:
              - {port: 0, kind: point-to-point, peer_uuid: 1002, peer_port: 1}

    设备序号即在 devices 列表中的位置。
    """

    def __init__(self, data: Dict[str, Any]):
        """
        初始化传感器

        Args:
            data: 已解析的描述内容
        """
        if not isinstance(data, dict):
            raise SensorError("Sensor fixture must be a mapping")

        devices = data.get("devices")
        if not isinstance(devices, list):
            raise SensorError("Sensor fixture has no device list")

        self.data = data
        self.devices: List[Dict[str, Any]] = devices
        self.hostname: Optional[str] = data.get("hostname")

    @classmethod
    def from_file(cls, path: str) -> "FixtureSensor":
        """
        从文件加载描述内容

        Raises:
            SensorError: 文件不存在或无法解析
        """
        path = os.path.expanduser(path)

        if not os.path.isfile(path):
            raise SensorError(f"Sensor fixture not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SensorError(f"Failed to parse sensor fixture: {e}")
        except IOError as e:
            raise SensorError(f"Failed to read sensor fixture: {e}")

        if not data:
            raise SensorError("Sensor fixture is empty")

        logger.debug(f"Loaded sensor fixture {path}")
        return cls(data)

    def _device(self, ordinal: int) -> Dict[str, Any]:
        if not 0 <= ordinal < len(self.devices):
            raise SensorError(f"No device with ordinal {ordinal}")
        device = self.devices[ordinal]
        if not isinstance(device, dict):
            raise SensorError(f"Device {ordinal} entry is not a mapping")
        return device

    def _field(self, ordinal: int, key: str, default: Any = None) -> int:
        value = self._device(ordinal).get(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise SensorError(f"Device {ordinal}: '{key}' is not an integer")
        if value < 0 or value > MAX_U64:
            raise SensorError(f"Device {ordinal}: '{key}' out of range: {value}")
        return value

    def get_api_version(self) -> Tuple[int, int]:
        raw = str(self.data.get("api_version", "1.0"))
        parts = raw.split(".")[:2]
        # "1" 视为 1.0
        if len(parts) == 1:
            parts.append("0")
        try:
            major, minor = (int(part) for part in parts)
        except ValueError:
            raise SensorError(f"Invalid sensor API version: {raw!r}")
        return major, minor

    def get_device_count(self) -> int:
        return len(self.devices)

    def get_device_uuid(self, ordinal: int) -> int:
        return self._field(ordinal, "uuid")

    def get_serials(self, ordinal: int) -> Tuple[int, int]:
        return (
            self._field(ordinal, "board_serial", 0),
            self._field(ordinal, "motherboard_serial", 0),
        )

    def get_slot_id(self, ordinal: int) -> int:
        return self._field(ordinal, "slot_id", 0)

    def get_link_adjacency(self, ordinal: int) -> List[Dict[str, Any]]:
        links = self._device(ordinal).get("links", [])
        if not isinstance(links, list):
            raise SensorError(f"Device {ordinal}: links is not a list")
        return links
