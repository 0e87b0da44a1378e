import os
import re
import enum
import logging
import threading
import traceback
import dropbox
import requests
from tqdm import tqdm
import custom_api
from errors import ListingError, PatternError


class OutcomeKind(enum.Enum):
    SUCCESS = 'success'
    STREAM_ERROR = 'stream_error'
    LOCAL_WRITE_ERROR = 'local_write_error'
    COPY_ERROR = 'copy_error'


class DownloadOutcome:
    def __init__(self, file_id, name, local_path, kind=OutcomeKind.SUCCESS, error=None, size=0):
        self.file_id = file_id
        self.name = name
        self.local_path = local_path
        self.kind = kind
        self.error = error
        self.size = size

    @property
    def ok(self):
        return self.kind is OutcomeKind.SUCCESS

    def __repr__(self):
        return f'DownloadOutcome({self.file_id!r}, {self.name!r}, {self.kind.name})'


def compile_filter(pattern):
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f'Invalid pattern {pattern!r}: {e}') from e


def filter_entries(entries, name_filter: re.Pattern, matches: dict):
    """
    Add every downloadable entry whose name matches `name_filter` to
    `matches` (id -> name).
    """
    for entry in entries:
        if not isinstance(entry, dropbox.files.FileMetadata):
            continue
        if name_filter.search(entry.name):
            matches[entry.id] = entry.name


def plan_local_paths(matches: dict, dest_dir: str):
    """
    Map each id to a file in `dest_dir`. Duplicate names get a " (n)" suffix
    before the extension; the first id in (name, id) order keeps the plain
    name so the layout is the same on every run.

    Names are compared case-insensitively: "Report.csv" and "report.csv" are
    the same file on macOS and Windows.
    """
    taken = set(name.casefold() for name in matches.values())
    used = set()
    paths = {}

    for file_id, name in sorted(matches.items(), key=lambda x: (x[1], x[0])):
        local_name = name
        if local_name.casefold() in used:
            stem, ext = os.path.splitext(name)
            n = 1
            local_name = f'{stem} ({n}){ext}'
            while local_name.casefold() in used or local_name.casefold() in taken:
                n += 1
                local_name = f'{stem} ({n}){ext}'
        used.add(local_name.casefold())
        paths[file_id] = os.path.join(dest_dir, local_name)

    return paths


class DBXWorker:

    def __init__(self, dbx: dropbox.Dropbox, open_stream=None):
        self.dbx = dbx
        self.open_stream = open_stream or custom_api.open_download_stream

    def list_and_filter(self, pattern, dbx_path=''):
        """
        List `dbx_path` recursively, one page at a time, and return the
        matching files as {id: name}.

        An empty page aborts the listing with ListingError, even when it is
        the first one.
        """
        name_filter = compile_filter(pattern)
        matches = {}

        try:
            result = self.dbx.files_list_folder(path=dbx_path, recursive=True, limit=2000)
            self.process_page(result, name_filter, matches)

            while result.has_more:
                result = self.dbx.files_list_folder_continue(cursor=result.cursor)
                self.process_page(result, name_filter, matches)

        except (dropbox.exceptions.DropboxException, requests.exceptions.RequestException) as e:
            raise ListingError(f'Unable to list {dbx_path or "/"}: {e}') from e

        return matches

    def process_page(self, result, name_filter, matches):
        if len(result.entries) == 0:
            raise ListingError('no files found')

        filter_entries(result.entries, name_filter, matches)

    def download_all(self, matches: dict, dest_dir='.', num_worker=5, progress=True):
        """
        Download every match with at most `num_worker` transfers in flight.

        Blocks until all of them have finished and returns {id: DownloadOutcome}.
        A failed item is logged and recorded; it never stops the others.
        """
        if num_worker < 1:
            raise ValueError('num_worker must be >= 1')

        if not matches:
            return {}

        local_paths = plan_local_paths(matches, dest_dir)
        slots = threading.BoundedSemaphore(num_worker)
        lock = threading.Lock()
        outcomes = {}

        with tqdm(unit='B', unit_scale=True, disable=not progress) as pbar:

            def worker(file_id, name):
                with slots:
                    outcomes[file_id] = self.download_one(
                        lock, file_id, name, local_paths[file_id], pbar.update)

            pools = []

            for file_id, name in matches.items():
                t = threading.Thread(target=worker, args=(file_id, name))
                t.start()

                pools.append(t)

            for pool in pools:
                pool.join()

        done = [o for o in outcomes.values() if o.ok]
        logging.info('Downloaded %d of %d files (%d bytes)',
                     len(done), len(matches), sum(o.size for o in done))

        return outcomes

    def download_one(self, lock: threading.Lock, file_id, name, local_path, on_update=None):
        logging.info('Download - %s', name)
        outcome = DownloadOutcome(file_id, name, local_path)

        try:
            with lock:
                self.dbx.check_and_refresh_access_token()
            response = self.open_stream(self.dbx, file_id)
        except Exception as e:
            logging.error(traceback.format_exc())
            logging.error('Download failed - %s', name)
            outcome.kind, outcome.error = OutcomeKind.STREAM_ERROR, e
            return outcome

        try:
            try:
                f = open(local_path, 'wb')
            except OSError as e:
                logging.error(traceback.format_exc())
                logging.error('Create failed - %s', local_path)
                outcome.kind, outcome.error = OutcomeKind.LOCAL_WRITE_ERROR, e
                return outcome

            try:
                with f:
                    outcome.size = custom_api.iter_download(response, f, on_update)
            except Exception as e:
                logging.error(traceback.format_exc())
                logging.error('Copy failed - %s', name)
                outcome.kind, outcome.error = OutcomeKind.COPY_ERROR, e
        finally:
            response.close()

        return outcome
