import os
import sys
import logging
import argparse
import auth_util
import dbx_util
from errors import ConfigError, DbxPullError, setup_logging


DEFAULT_NUM_WORKER = 5


def positive_int(value):
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f'{value} is not a positive integer')
    return n


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='dbx-pull',
        description='Download Dropbox files whose name matches a regular expression')
    parser.add_argument('pattern', help='Regular expression matched against file names')
    parser.add_argument('--path', default='', help='Dropbox folder to search (default: whole Dropbox)')
    parser.add_argument('--dest', default='.', help='Local directory to download into')
    parser.add_argument('--workers', type=positive_int, default=DEFAULT_NUM_WORKER,
                        help='Maximum number of concurrent downloads')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    return parser.parse_args(argv)


def print_matches(matches: dict):
    print(f'Found files ({len(matches)}):')
    for num, name in enumerate(sorted(matches.values()), start=1):
        print(f'{num}. {name}')


def should_download(read=input):
    while True:
        try:
            response = read('Do you want to download it? (y/n): ')
        except EOFError as e:
            raise ConfigError('Unable to read response') from e

        response = response.strip()
        if response == 'y':
            return True
        if response == 'n':
            return False


def main(argv=None, read=input):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        name_filter = dbx_util.compile_filter(args.pattern)

        dbx = auth_util.get_dbx_client(read=read)
        worker = dbx_util.DBXWorker(dbx)

        matches = worker.list_and_filter(name_filter, args.path)
        if not matches:
            print('No such files')
            return 0

        print_matches(matches)

        if not should_download(read):
            return 0

        try:
            os.makedirs(args.dest, exist_ok=True)
        except OSError as e:
            raise ConfigError(f'Unable to create {args.dest}: {e}') from e

    except DbxPullError as e:
        logging.critical(e)
        return 1

    worker.download_all(matches, args.dest, num_worker=args.workers)
    return 0


if __name__ == '__main__':
    sys.exit(main())
