import os
import sys
import subprocess

def simple_command(args, write_output=True, **kwargs):
    p = subprocess.run(args, capture_output=True, text=True, **kwargs)

    if write_output:
        if p.stdout:
            sys.stdout.write(p.stdout)
            sys.stdout.flush()
        if p.stderr:
            sys.stderr.write(p.stderr)
            sys.stderr.flush()

    return p

def call_command(args, **kwargs):
    # Inherits our stdio, so interactive sessions work as-is
    sys.stdout.flush()
    sys.stderr.flush()
    return exit_status(subprocess.call(args, **kwargs))

def exec_command(args):
    sys.stdout.flush()
    sys.stderr.flush()
    # Only returns on failure, by raising OSError
    os.execvp(args[0], args)

def exit_status(returncode):
    # Same convention as the shell: killed by signal N -> 128 + N
    if returncode < 0:
        return 128 - returncode
    return returncode
