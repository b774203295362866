""" Authoring tool that parses dungeon files and reports problems.

    dungeonscript-check dungeons/*.txt

prints one "file:line: message" per problem and exits with status 1 if there
were any.
"""

import sys
import argparse
import contextlib
import logging
from collections.abc import Sequence
from typing import Optional, TextIO

import tqdm # type: ignore

from dungeonscript import util, config, dungeon_parser
from dungeonscript.document import Document

logger = logging.getLogger(__name__)


def summarize(document:Document) -> str:
    return (
        f'{len(document.rooms())} rooms, '
        f'{len(document.encounters())} encounters, '
        f'{sum(len(document.choices(e.id)) for e in document.encounters())} choices, '
        f'{len(document.events())} events, '
        f'{len(document.templates())} templates'
    )

def check_file(path:str, out:TextIO, summary:bool=False) -> int:
    """ parses one file, writes its problems to out, returns how many """

    try:
        with open(path, "rt", encoding="utf-8") as f:
            raw = f.read()
    except (OSError, UnicodeDecodeError) as e:
        print(f'{path}: cannot read: {e}', file=out)
        return 1

    result = dungeon_parser.parse(raw)
    for error in result.errors:
        print(f'{path}:{error.line}: {error.message}', file=out)
    if summary:
        print(f'{path}: {summarize(result.document)}', file=out)
    return len(result.errors)

def main(argv:Optional[Sequence[str]]=None) -> int:
    logging.basicConfig(
            format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s",
            stream=sys.stderr,
            level=logging.WARNING,
    )
    # send warnings to the logger
    logging.captureWarnings(True)

    with contextlib.ExitStack() as context_stack:
        parser = argparse.ArgumentParser(description="parse dungeon files and report problems")
        parser.add_argument("files", nargs="+", type=str,
                help="dungeon files to check")
        parser.add_argument("-v", "--verbose", action="store_true",
                help="debug logging")
        parser.add_argument("-q", "--quiet", action="store_true",
                help="no progress bar")
        parser.add_argument("-s", "--summary", action="store_true",
                help="also print what each file contains")
        parser.add_argument("--config", type=str, default=None,
                help="toml file overriding the built-in config")
        parser.add_argument("--pdb", action="store_true")

        args = parser.parse_args(argv)

        if args.verbose:
            logging.getLogger("dungeonscript").setLevel(logging.DEBUG)

        if args.pdb:
            context_stack.enter_context(util.PDBManager())

        if args.config:
            with open(args.config, "rt") as config_file:
                try:
                    config.load_config(config_file)
                except config.ConfigError as e:
                    logger.error(f'bad config {args.config}: {e}')
                    return 2

        error_count = 0
        files_with_errors = 0
        for path in tqdm.tqdm(args.files, disable=args.quiet or len(args.files) < 2, file=sys.stderr):
            count = check_file(path, sys.stdout, args.summary)
            error_count += count
            if count:
                files_with_errors += 1

        logger.info(f'checked {len(args.files)} files, {error_count} problems in {files_with_errors} files')
        return 1 if error_count else 0

if __name__ == "__main__":
    sys.exit(main())
