#!/usr/bin/env python3

'''
aspendev - build and launch the aspen-rs development container
'''

import sys
import logging

from aspendev.errors import AspendevError, UsageError, WorkspaceError
from aspendev.config.host import detect_host
from aspendev.config.settings import load_settings
from aspendev.config.options import (
    HelpRequested, build_parser, run_parser, resolve_options, validate_cpus,
)
from aspendev.runtimes.docker import DockerExecutor
from aspendev.utils import ensure_dirs, setup_logging

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

def _print_summary(options, host):
    print('Launching container:')
    print(f"  Host arch      : {host.arch}")
    print(f"  Docker platform: {options.platform}")
    print(f"  Host CPUs      : {host.cpu_count}")
    print(f"  Using CPUs     : {options.cpus or ''}")
    print(f"  CPU pinning    : {options.cpuset or ''}")
    print(f"  Image tag      : {options.image_ref}")
    print(f"  Container name : {options.container_name}")
    print(flush=True)

def build_cmd(args, host=None, settings=None, executor=None, prog=None):
    if host is None:
        host = detect_host()

    parser = build_parser(host, prog=prog or 'aspendev-build')
    try:
        parsed = parser.parse_args(args)
    except HelpRequested:
        return 0

    if settings is None:
        settings = load_settings()
    options = resolve_options(parsed, host, settings)
    logger.debug(f"Resolved {options!r}")
    settings.check_build_context()

    if executor is None:
        executor = DockerExecutor()
    return executor.build_image(options, settings, host)

def run_cmd(args, host=None, settings=None, executor=None, prog=None):
    if host is None:
        host = detect_host()

    parser = run_parser(host, prog=prog or 'aspendev-run')
    try:
        parsed = parser.parse_args(args)
    except HelpRequested:
        return 0
    if parsed.verbose:
        setup_logging(verbose=True)

    if settings is None:
        settings = load_settings()
    options = resolve_options(parsed, host, settings, cpu_defaults=True)
    validate_cpus(options, host)
    logger.debug(f"Resolved {options!r}")

    if options.verbose:
        _print_summary(options, host)

    workspace = settings.get_path('container', 'workspace')
    try:
        if ensure_dirs([(workspace, 0o755)]):
            logger.debug(f"Created workspace {workspace}")
    except OSError as e:
        raise WorkspaceError(workspace, e.strerror or str(e)) from None

    if executor is None:
        executor = DockerExecutor()

    # NOTE: not atomic; a concurrent launch can still race us to the name,
    # in which case docker run fails with a name conflict
    container_id = executor.find_running_container(options.container_name)
    if container_id:
        print(
            f"* Reusing running container {options.container_name} "
            f"({container_id})",
            flush=True,
        )
        return executor.attach(
            options.container_name, settings.get('container', 'shell')
        )

    # Replaces this process with docker run
    return executor.run_container(options, settings, host, workspace)

def help_cmd(args):
    print(f"usage: aspendev {{{','.join(COMMANDS)}}} [options]")
    print()
    print('commands:')
    print('  build     build the development image')
    print('  run       launch or attach to the development container')
    print('  help      show this help')
    print('  version   show the version')
    print()
    print("Run 'aspendev <command> --help' for command options.")
    return 0

def version_cmd(args):
    print(f"aspendev {__version__}")
    return 0

COMMANDS = {
    'build': build_cmd,
    'run': run_cmd,
    'help': help_cmd,
    'version': version_cmd,
}

def _invoke(command, args, **kwargs):
    try:
        return command(args, **kwargs)
    except UsageError as e:
        logger.error(f"Error: {e}")
        if e.usage:
            sys.stderr.write(e.usage)
            sys.stderr.flush()
        return e.exit_code
    except AspendevError as e:
        logger.error(f"Error: {e}")
        return e.exit_code

def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    setup_logging()

    if not argv or argv[0] in ('-h', '--help'):
        help_cmd([])
        return 0 if argv else 1

    name, args = argv[0], argv[1:]
    command = COMMANDS.get(name)
    if command is None:
        logger.error(f"Unknown command: {name}")
        logger.error("Run 'aspendev help' for usage.")
        return 1

    if command in (build_cmd, run_cmd):
        return _invoke(command, args, prog=f"aspendev {name}")
    return _invoke(command, args)

def build_main():
    setup_logging()
    sys.exit(_invoke(build_cmd, sys.argv[1:]))

def run_main():
    setup_logging()
    sys.exit(_invoke(run_cmd, sys.argv[1:]))

if __name__ == '__main__':
    sys.exit(main())
