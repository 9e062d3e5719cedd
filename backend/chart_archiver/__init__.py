"""
图表归档系统 - 核心模块

模块结构：
- config/     运行期配置与门店表加载
- models/     数据模型定义
- pipeline/   导出流水线（重试/限流/日期目录/临时渲染会话/编排）
- services/   外部服务适配（Sheets/Slides/Drive）
- cli.py      命令行入口
"""

__version__ = "0.1.0"
