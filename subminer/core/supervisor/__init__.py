"""Launching and supervising the mpv-subtitleminer helper process."""

from .endpoint import HelperInstallation, locate_installation, normalize_control_endpoint
from .failure import HelperFailure, classify_exit
from .helper_supervisor import HelperSupervisor, SupervisedProcess, SupervisorState

__all__ = [
    'HelperInstallation',
    'locate_installation',
    'normalize_control_endpoint',
    'HelperFailure',
    'classify_exit',
    'HelperSupervisor',
    'SupervisedProcess',
    'SupervisorState',
]
