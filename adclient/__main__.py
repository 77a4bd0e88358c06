"""
adctl - command line access to a running ad

Usage:
    python -m adclient index
    python -m adclient edit ', x/foo/ c/bar/'
    python -m adclient read 3 body
    echo -n 'text' | python -m adclient write 3 xdot
    printf 'a\\nb\\n' | python -m adclient select 'pick one'
    python -m adclient log

Scripts launched from inside ad get `bufid` in their environment:
    python -m adclient require && python -m adclient clear "$bufid"

Exit status is 0 on success and 1 when the command fails, when `require`
is run outside ad, or after `error`.
"""

import argparse
import asyncio
import logging
import sys
from typing import BinaryIO, List, Optional

from ninep import P9Error

from .client import AdClient
from .config import Config
from .transport import Transport

logger = logging.getLogger("adclient")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adctl",
        description="Script a running ad editor through its 9P filesystem"
    )
    parser.add_argument(
        '--address', '-a',
        help='Dial string: unix!path or tcp!host!port (default: $AD_ADDRESS or the ad socket in $NAMESPACE)'
    )
    parser.add_argument(
        '--profile', metavar='PATH',
        help='dotenv file to load before reading the environment (default: .env)'
    )
    parser.add_argument(
        '--verbose', '-v', action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--debug', action='store_true',
        help='Enable debug logging'
    )

    sub = parser.add_subparsers(dest='command', metavar='COMMAND')
    sub.required = True

    p = sub.add_parser('ctl', help='Write a control message')
    p.add_argument('words', nargs='+')

    p = sub.add_parser('edit', help='Run an Edit script in the current buffer')
    p.add_argument('words', nargs='+')

    sub.add_parser('index', help='Print the buffer index')

    p = sub.add_parser('error', help='Show an error in the status line and exit 1')
    p.add_argument('words', nargs='+')

    sub.add_parser('require', help='Fail unless launched from inside ad')

    p = sub.add_parser('read', help='Print a buffer file')
    p.add_argument('buffer')
    p.add_argument('file')

    p = sub.add_parser('write', help='Write stdin to a buffer file')
    p.add_argument('buffer')
    p.add_argument('file')

    sub.add_parser('log', help='Follow the event log')
    sub.add_parser('current', help='Print the id of the focused buffer')

    p = sub.add_parser('focus', help='Focus a buffer')
    p.add_argument('buffer')

    p = sub.add_parser('clear', help='Delete the content of a buffer')
    p.add_argument('buffer')

    p = sub.add_parser('mark-clean', help='Mark a buffer as clean')
    p.add_argument('buffer')

    p = sub.add_parser('bof', help='Move the cursor to the beginning of the file')
    p.add_argument('buffer')

    p = sub.add_parser('eof', help='Move the cursor to the end of the file')
    p.add_argument('buffer')

    p = sub.add_parser('select', help='Pick one of the lines on stdin in the minibuffer')
    p.add_argument('prompt', nargs='?')

    return parser


async def dispatch(ad: AdClient, args: argparse.Namespace, stdin: BinaryIO, stdout: BinaryIO):
    cmd = args.command

    if cmd == 'ctl':
        await ad.send_control(" ".join(args.words))

    elif cmd == 'edit':
        await ad.edit(" ".join(args.words))

    elif cmd == 'index':
        stdout.write(await ad.list_buffers())

    elif cmd == 'error':
        await ad.report_error(" ".join(args.words))

    elif cmd == 'require':
        await ad.require_ad()

    elif cmd == 'read':
        stdout.write(await ad.read_buffer_file(args.buffer, args.file))

    elif cmd == 'write':
        await ad.write_buffer_file(args.buffer, args.file, stdin.read())

    elif cmd == 'log':
        async with ad.follow_log() as events:
            async for chunk in events:
                stdout.write(chunk)
                stdout.flush()

    elif cmd == 'current':
        stdout.write((await ad.current_buffer_id() + "\n").encode("utf-8"))

    elif cmd == 'focus':
        await ad.focus_buffer(args.buffer)

    elif cmd == 'clear':
        await ad.clear_buffer(args.buffer)

    elif cmd == 'mark-clean':
        await ad.mark_clean(args.buffer)

    elif cmd == 'bof':
        await ad.cur_to_bof(args.buffer)

    elif cmd == 'eof':
        await ad.cur_to_eof(args.buffer)

    elif cmd == 'select':
        candidates = stdin.read().decode("utf-8").splitlines()
        choice = await ad.minibuffer_select(candidates, prompt=args.prompt)
        if choice is not None:
            stdout.write((choice + "\n").encode("utf-8"))


async def run(ad: AdClient, args: argparse.Namespace, stdin: BinaryIO, stdout: BinaryIO) -> int:
    """Connect, run one command, disconnect. Returns the exit status."""
    try:
        await ad.connect()
        logger.debug(f"Running {args.command}")
        await dispatch(ad, args, stdin, stdout)
        return 0
    except SystemExit as e:
        return e.code
    finally:
        await ad.close()
        stdout.flush()


def main(
    argv: Optional[List[str]] = None,
    transport: Optional[Transport] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    level = logging.WARNING
    if args.verbose:
        level = logging.INFO
    if args.debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format='%(asctime)s %(name)s %(levelname)s %(message)s',
        datefmt='%H:%M:%S'
    )

    config = Config.from_env(dotenv_path=args.profile)
    if args.address:
        config.address = args.address

    try:
        ad = AdClient(config, transport)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(
            ad,
            args,
            stdin or sys.stdin.buffer,
            stdout or sys.stdout.buffer,
        ))
    except (P9Error, ConnectionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == '__main__':
    sys.exit(main())
