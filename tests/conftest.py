import logging
import threading
import time

import dropbox
import pytest


def file_entry(file_id, name):
    return dropbox.files.FileMetadata(name=name, id=file_id, path_lower='/' + name.lower())


def folder_entry(file_id, name):
    return dropbox.files.FolderMetadata(name=name, id=file_id, path_lower='/' + name.lower())


class FakeDropbox:
    """Serves listing pages from memory. Each page is a list of entries."""

    def __init__(self, pages=(), list_error=None):
        self.pages = list(pages)
        self.list_error = list_error
        self.refreshes = 0
        self.list_calls = []

    def _page(self, index):
        has_more = index + 1 < len(self.pages)
        cursor = f'cursor-{index + 1}' if has_more else 'cursor-end'
        return dropbox.files.ListFolderResult(entries=self.pages[index], cursor=cursor, has_more=has_more)

    def files_list_folder(self, path, recursive=False, limit=None):
        self.list_calls.append(('list', path))
        if self.list_error is not None:
            raise self.list_error
        return self._page(0)

    def files_list_folder_continue(self, cursor):
        self.list_calls.append(('continue', cursor))
        return self._page(int(cursor.split('-')[1]))

    def check_and_refresh_access_token(self):
        self.refreshes += 1


class FakeResponse:
    def __init__(self, chunks, on_close=None, delay=0.0, fail_after=None):
        self.chunks = chunks
        self.on_close = on_close
        self.delay = delay
        self.fail_after = fail_after
        self.closed = False

    def iter_content(self, chunk_size=1):
        for i, chunk in enumerate(self.chunks):
            if self.delay:
                time.sleep(self.delay)
            if self.fail_after is not None and i >= self.fail_after:
                raise ConnectionError('connection reset')
            yield chunk

    def close(self):
        if not self.closed and self.on_close is not None:
            self.on_close()
        self.closed = True


class FakeRemote:
    """
    Stand-in for custom_api.open_download_stream that serves bytes per id
    and tracks how many streams are open at once.
    """

    def __init__(self, contents, delay=0.0, open_errors=(), copy_errors=()):
        self.contents = contents
        self.delay = delay
        self.open_errors = set(open_errors)
        self.copy_errors = set(copy_errors)
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.opened = []
        self.responses = []

    def _closed(self):
        with self.lock:
            self.active -= 1

    def __call__(self, dbx, file_id):
        if file_id in self.open_errors:
            raise dropbox.exceptions.HttpError('req-id', 409, 'path/not_found')

        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.opened.append(file_id)

        data = self.contents[file_id]
        response = FakeResponse(
            [data[:3], data[3:]],
            on_close=self._closed,
            delay=self.delay,
            fail_after=1 if file_id in self.copy_errors else None)
        self.responses.append(response)
        return response


@pytest.fixture
def fake_config(tmp_path):
    from config import PullConfig

    return PullConfig(str(tmp_path / 'cfg' / '.dbx_pull.cfg'))


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
