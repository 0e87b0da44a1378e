import logging


class DbxPullError(Exception): pass
class ConfigError(DbxPullError): pass
class PatternError(ConfigError): pass
class AuthenticationError(DbxPullError): pass
class ListingError(DbxPullError): pass


def setup_logging(level: int = logging.INFO):
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)
