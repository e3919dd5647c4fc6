"""
Utility modules for the toolchain provisioner.
"""

from .logging import setup_root_logger, log_banner

__all__ = ["setup_root_logger", "log_banner"]
