"""
远端机器信息采集模块

通过 SSH 从其他机器获取其 MachineSnapshot：
1. 在远端执行采集命令，命令将快照 JSON 打印到标准输出
2. 或者通过 SFTP 读取远端已保存的快照文件
"""

import logging
from typing import Optional

from engine.errors import DependencyUnavailableError
from engine.snapshot import MachineSnapshot

logger = logging.getLogger(__name__)


class RemoteSnapshotCollector:
    """远端快照采集器"""

    def __init__(self, ssh_client):
        """
        初始化采集器

        Args:
            ssh_client: SSH 客户端，需要实现 execute(cmd) 和 read_file(path) 方法
        """
        self.ssh = ssh_client

    def collect(self, command: str) -> MachineSnapshot:
        """
        执行远端采集命令并解析输出

        Args:
            command: 远端命令，输出为快照 JSON

        Returns:
            解析后的快照

        Raises:
            DependencyUnavailableError: 命令无输出
            MalformedSnapshotError: 输出不是合法快照
            UnsupportedVersionError: 快照版本不兼容
        """
        output = self.ssh.execute(command)
        return self._parse(output, f"command '{command}'")

    def collect_file(self, path: str) -> MachineSnapshot:
        """
        读取远端已保存的快照文件

        Args:
            path: 远端文件路径
        """
        content = self.ssh.read_file(path)
        return self._parse(content, f"file {path}")

    def _parse(self, content: Optional[str], source: str) -> MachineSnapshot:
        if not content or not content.strip():
            raise DependencyUnavailableError(f"No machine information returned by {source}")

        snapshot = MachineSnapshot.from_json(content)
        logger.info(f"Received {len(snapshot)} devices from {source}")
        return snapshot
