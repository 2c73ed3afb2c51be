import re
import math
import logging
import argparse

from aspendev.errors import (
    UsageError, UnsupportedPlatformError, ValidationError,
)
from .defaults import PLATFORMS

logger = logging.getLogger(__name__)

# Docker's --cpuset-cpus syntax: 0-3, 0,2 or 0-3,8
_CPUSET_RE = re.compile(r'^\d+(-\d+)?(,\d+(-\d+)?)*$')


class OptionParser(argparse.ArgumentParser):

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('add_help', False)
        kwargs.setdefault('allow_abbrev', False)
        super().__init__(*args, **kwargs)

    def error(self, message):
        raise UsageError(message, usage=self.format_usage())


class HelpRequested(Exception):
    pass


class HelpAction(argparse.Action):

    def __init__(self, option_strings, dest, **kwargs):
        super().__init__(option_strings, dest, nargs=0, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        # Stops at the flag, so anything after it is never looked at
        parser.print_help()
        raise HelpRequested()


class PlatformAction(argparse.Action):

    def __init__(self, option_strings, dest, arch=None, host=None, **kwargs):
        self.arch = arch
        self.host = host
        super().__init__(option_strings, dest, nargs=0, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        # Checked as soon as the flag is seen, even if overridden later
        if self.arch == 'arm64' and self.host and not self.host.is_arm:
            raise UnsupportedPlatformError(
                f"{option_string} builds only supported on ARM hosts "
                f"(host is {self.host.arch})"
            )
        namespace.arch = self.arch
        # Reset to the platform's default tag; a later --tag still wins
        namespace.tag = None


class Options(object):

    def __init__(self, image, tag, platform, container_name=None,
                 cpus=None, cpuset=None, auto_cpus=False, verbose=False):
        self.image = image
        self.tag = tag
        self.platform = platform
        self.container_name = container_name
        self.cpus = cpus
        self.cpuset = cpuset
        self.auto_cpus = auto_cpus
        self.verbose = verbose

    def __repr__(self):
        info = [self.__class__.__name__, f"image={self.image_ref!r}"]
        info.append(f"platform={self.platform!r}")
        if self.container_name:
            info.append(f"container={self.container_name!r}")
        if self.cpus is not None:
            info.append(f"cpus={self.cpus!r}")
        if self.cpuset is not None:
            info.append(f"cpuset={self.cpuset!r}")
        return '<{}>'.format(' '.join(info))

    @property
    def image_ref(self):
        return f"{self.image}:{self.tag}"

    def cpu_args(self):
        args = []
        if self.cpus is not None:
            args.append(f"--cpus={self.cpus}")
        if self.cpuset is not None:
            args.append(f"--cpuset-cpus={self.cpuset}")
        return args


def _add_platform_arguments(parser, host):
    group = parser.add_argument_group('Platform')
    group.add_argument(
        '-x', '--x86', '--amd64', '--x86_64',
        action=PlatformAction, arch='amd64', host=host, dest='arch',
        help='target linux/amd64 (default, also on Apple Silicon)',
    )
    group.add_argument(
        '-a', '--arm', '--arm64',
        action=PlatformAction, arch='arm64', host=host, dest='arch',
        help='target native linux/arm64 (ARM hosts only)',
    )
    group.add_argument(
        '-t', '--tag', metavar='NAME', dest='tag',
        help='use a specific image tag',
    )
    parser.add_argument(
        '-h', '--help', action=HelpAction, dest='help',
        help='show this help and exit',
    )
    parser.set_defaults(arch='amd64', tag=None)

def build_parser(host=None, prog='aspendev-build'):
    parser = OptionParser(
        prog=prog,
        description='Build the aspen-rs development image.',
        epilog=(
            'examples:\n'
            f'  {prog}              build linux/amd64 (default)\n'
            f'  {prog} --arm        build native linux/arm64 on ARM hosts\n'
            f'  {prog} --tag dev    tag the image as :dev'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_platform_arguments(parser, host)
    return parser

def run_parser(host=None, prog='aspendev-run'):
    parser = OptionParser(
        prog=prog,
        description='Launch or attach to the aspen-rs dev container.',
    )
    group = parser.add_argument_group('CPU control')
    group.add_argument(
        '--cpus', metavar='N', dest='cpus',
        help='limit container to N CPUs (overrides auto detection)',
    )
    group.add_argument(
        '--pin', '--cpuset', metavar='RANGE', dest='cpuset',
        help='pin container to CPUs, e.g. 0-3 (overrides auto pinning)',
    )
    _add_platform_arguments(parser, host)
    parser.add_argument(
        '-V', '--verbose', action='store_true', dest='verbose',
        help='print resolved settings and the full docker command',
    )
    return parser

def resolve_options(parsed, host, settings, cpu_defaults=False):
    arch = parsed.arch
    tag = parsed.tag if parsed.tag is not None else settings.tag_for(arch)
    cpus = getattr(parsed, 'cpus', None)
    cpuset = getattr(parsed, 'cpuset', None)

    # Any explicit CPU flag turns off both auto values
    auto_cpus = cpu_defaults and cpus is None and cpuset is None
    if auto_cpus:
        cpus = str(host.cpu_count)
        cpuset = f"0-{host.cpu_count - 1}"

    return Options(
        image=settings.get('image', 'name'),
        tag=tag,
        platform=PLATFORMS[arch],
        container_name=settings.get('container', 'name'),
        cpus=cpus,
        cpuset=cpuset,
        auto_cpus=auto_cpus,
        verbose=getattr(parsed, 'verbose', False),
    )

def cpuset_last_cpu(cpuset):
    if not _CPUSET_RE.match(cpuset):
        raise ValidationError(f"Invalid pin range {cpuset!r}")

    last = -1
    for part in cpuset.split(','):
        first, _, end = part.partition('-')
        if end and int(end) < int(first):
            raise ValidationError(f"Invalid pin range {cpuset!r}")
        last = max(last, int(end or first))

    return last

def validate_cpus(options, host):
    if options.cpus is not None:
        try:
            limit = float(options.cpus)
        except ValueError:
            raise ValidationError(
                f"Invalid CPU limit {options.cpus!r}"
            ) from None
        if not math.isfinite(limit) or limit <= 0:
            raise ValidationError(f"Invalid CPU limit {options.cpus!r}")
        # Fractional CPUs ignored for the comparison
        if int(limit) > host.cpu_count:
            logger.warning(
                f"Warning: Requested --cpus={options.cpus} exceeds "
                f"available host CPUs ({host.cpu_count}).\n"
                f"         Docker will clamp the value."
            )

    if options.cpuset is not None:
        if cpuset_last_cpu(options.cpuset) >= host.cpu_count:
            raise ValidationError(
                f"Requested pin range {options.cpuset} exceeds "
                f"host CPU count ({host.cpu_count})."
            )

    return options
