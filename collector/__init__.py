"""
Collector module - 机器信息采集模块

包含：
- sensor: 设备传感器接口与描述文件传感器
- devices: 本机设备信息采集
- links: 链路邻接采集
- remote: 通过 SSH 获取远端机器信息
"""

from .sensor import DeviceSensor, FixtureSensor, SensorError
from .devices import DeviceCollector, probe_local_snapshot
from .links import LinkCollector
from .remote import RemoteSnapshotCollector

__all__ = [
    'DeviceSensor',
    'FixtureSensor',
    'SensorError',
    'DeviceCollector',
    'probe_local_snapshot',
    'LinkCollector',
    'RemoteSnapshotCollector',
]
