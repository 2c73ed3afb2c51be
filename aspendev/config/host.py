import os
import logging
import platform

from aspendev.utils import simple_command
from .defaults import ARM_ARCHS

logger = logging.getLogger(__name__)


class HostProfile(object):

    def __init__(self, system, arch, cpu_count):
        self.system = system
        self.arch = arch
        self.cpu_count = cpu_count

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} system={self.system!r} "
            f"arch={self.arch!r} cpu_count={self.cpu_count!r}>"
        )

    @property
    def is_arm(self):
        return self.arch in ARM_ARCHS

    @property
    def is_darwin(self):
        return self.system == 'Darwin'


def count_cpus(system=None):
    if system is None:
        system = platform.system()

    if system == 'Darwin':
        try:
            proc = simple_command(
                ['sysctl', '-n', 'hw.ncpu'], write_output=False
            )
            if proc.returncode == 0:
                return int(proc.stdout.strip())
        except (OSError, ValueError) as e:
            logger.debug(f"sysctl hw.ncpu unavailable: {e}")

    # Usable CPUs, same as nproc
    try:
        return len(os.sched_getaffinity(0))
    except AttributeError:
        return os.cpu_count() or 1

def detect_host():
    system = platform.system()
    host = HostProfile(system, platform.machine(), count_cpus(system))
    logger.debug(f"Detected host: {host!r}")
    return host
