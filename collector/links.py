"""
链路邻接采集模块

把传感器返回的原始链路记录转换为 DeviceLink：
- 点对点链路：对端设备 UUID 与对端端口
- 交换机链路：所连交换机标识
"""

import logging
from typing import Any, Dict, Tuple

from engine.errors import DependencyUnavailableError
from engine.models import DeviceLink, LinkKind
from engine.snapshot import MAX_U64

from .sensor import SensorError

logger = logging.getLogger(__name__)


class LinkCollector:
    """链路邻接采集器"""

    def __init__(self, sensor):
        """
        初始化采集器

        Args:
            sensor: 传感器，需要实现 get_link_adjacency(ordinal) 方法
        """
        self.sensor = sensor

    def collect(self, ordinal: int) -> Tuple[DeviceLink, ...]:
        """
        采集指定设备的链路

        Args:
            ordinal: 设备序号

        Returns:
            按传感器顺序排列的链路

        Raises:
            DependencyUnavailableError: 传感器失败或返回格式错误
        """
        try:
            raw_links = self.sensor.get_link_adjacency(ordinal)
        except SensorError as e:
            raise DependencyUnavailableError(f"Failed to read links of device {ordinal}: {e}")

        links = tuple(self._parse_link(ordinal, raw) for raw in raw_links)
        logger.debug(f"Device {ordinal}: {len(links)} links")
        return links

    def _parse_link(self, ordinal: int, raw: Dict[str, Any]) -> DeviceLink:
        """解析单条链路记录"""
        if not isinstance(raw, dict):
            raise DependencyUnavailableError(f"Device {ordinal}: malformed link record {raw!r}")

        try:
            port_id = _link_int(raw, "port")
            kind = LinkKind(raw.get("kind", LinkKind.POINT_TO_POINT.value))
            if kind == LinkKind.POINT_TO_SWITCH:
                switch_id = str(raw["switch_id"])
                return DeviceLink(port_id=port_id, kind=kind, switch_id=switch_id)
            return DeviceLink(
                port_id=port_id,
                kind=kind,
                peer_uuid=_link_int(raw, "peer_uuid"),
                peer_port=_link_int(raw, "peer_port"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DependencyUnavailableError(f"Device {ordinal}: malformed link record {raw!r}: {e}")


def _link_int(raw: Dict[str, Any], key: str) -> int:
    value = raw[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"'{key}' is not an integer")
    if value < 0 or value > MAX_U64:
        raise ValueError(f"'{key}' out of range: {value}")
    return value
