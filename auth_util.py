import os
import logging
import dropbox
import requests
from dropbox import DropboxOAuth2FlowNoRedirect
from dropbox.exceptions import AuthError
from config import config as default_config
from errors import ConfigError, AuthenticationError


APP_KEY_ENV = 'DBX_PULL_APP_KEY'
APP_SECRET_ENV = 'DBX_PULL_APP_SECRET'

# Read-only access; delete the cached token after changing these.
SCOPES = ['files.metadata.read', 'files.content.read']


def get_app_key_secret():
    errmsg = "'%s' environment variable is required"

    app_key = os.environ.get(APP_KEY_ENV)
    if not app_key:
        raise ConfigError(errmsg % APP_KEY_ENV)

    app_secret = os.environ.get(APP_SECRET_ENV)
    if not app_secret:
        raise ConfigError(errmsg % APP_SECRET_ENV)

    return app_key, app_secret


def get_dbx_client(cfg=default_config, read=input):
    """
    Return an authenticated client, running the OAuth2 flow when the token
    cache is empty or holds a token the server rejects.
    """
    app_key, app_secret = get_app_key_secret()

    if cfg.auth.refresh_token:
        try:
            dbx = make_client(app_key, app_secret, cfg.auth.refresh_token)
            valid = validate_auth(dbx)
        except (dropbox.exceptions.DropboxException, requests.exceptions.RequestException) as e:
            raise AuthenticationError(f'Unable to authenticate: {e}') from e
        if valid:
            return dbx
        print('Cached REFRESH_TOKEN is not valid')

    get_refresh_token(app_key, app_secret, cfg, read)
    return make_client(app_key, app_secret, cfg.auth.refresh_token)


def make_client(app_key, app_secret, refresh_token):
    return dropbox.Dropbox(
        app_key=app_key,
        app_secret=app_secret,
        oauth2_refresh_token=refresh_token)


def get_refresh_token(app_key, app_secret, cfg, read=input):
    auth_flow = DropboxOAuth2FlowNoRedirect(
        app_key, app_secret, token_access_type='offline', scope=SCOPES)

    authorize_url = auth_flow.start()
    print("Go to the following link in your browser then type the authorization code:")
    print(authorize_url)

    try:
        auth_code = read("Enter authorization code: ").strip()
    except EOFError as e:
        raise ConfigError('Unable to read authorization code') from e

    try:
        oauth_result = auth_flow.finish(auth_code)
    except Exception as e:
        raise AuthenticationError(f'Unable to retrieve token from web: {e}') from e

    cfg.auth.refresh_token = oauth_result.refresh_token

    print(f'Saving credential file to: {cfg.config_path}')
    try:
        cfg.flush()
    except OSError as e:
        raise ConfigError(f'Unable to cache oauth token: {e}') from e


def validate_auth(dbx: dropbox.Dropbox):
    try:
        dbx.users_get_current_account()
    except AuthError as e:
        logging.debug('Token rejected: %s', e)
        return False
    return True
