from .files import ensure_dirs
from .logs import setup_logging
from .process import simple_command, call_command, exec_command, exit_status
