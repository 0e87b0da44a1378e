import json
import requests
import dropbox


DOWNLOAD_URL = 'https://content.dropboxapi.com/2/files/download'

CHUNK_SIZE = 2**16


def open_download_stream(dbx: dropbox.Dropbox, file_id: str):
    """
    Start a streamed download of `file_id` ("id:..." or a path). The caller
    owns the returned response and must close it.
    """
    headers = {
        'Authorization': f'Bearer {dbx._oauth2_access_token}',
        'Dropbox-API-Arg': json.dumps({'path': file_id}),
        }

    r = requests.get(DOWNLOAD_URL, headers=headers, stream=True)
    try:
        r.raise_for_status()
    except requests.HTTPError:
        r.close()
        raise
    return r


def iter_download(response, f, on_update=None):
    written = 0

    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        f.write(chunk)
        written += len(chunk)
        if on_update is not None:
            on_update(len(chunk))

    return written
