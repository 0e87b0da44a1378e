import os
import configparser
from typing import get_type_hints


DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser('~'), '.config', '.dbx_pull.cfg')


class Config:
    def __init__(self, config_path=None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH

        types = get_type_hints(type(self))
        for key in types:
            setattr(self, key, types[key]())

        self.read()

    def read(self):
        config_parser = configparser.ConfigParser(allow_no_value=True)
        config_parser.read(self.config_path)

        for section_name in get_type_hints(type(self)):
            value = getattr(self, section_name)

            if not config_parser.has_section(section_name):
                config_parser.add_section(section_name)

            section = config_parser[section_name]

            for key in get_type_hints(type(value)):
                setattr(value, key, section.get(key))

    def flush(self):
        config_parser = configparser.ConfigParser(allow_no_value=True)

        for section_name in get_type_hints(type(self)):
            value = getattr(self, section_name)
            config_parser.add_section(section_name)
            section = config_parser[section_name]

            for key in get_type_hints(type(value)):
                section[key] = getattr(value, key)

        os.makedirs(os.path.dirname(self.config_path) or '.', exist_ok=True)

        # The token cache holds a long-lived refresh token.
        fd = os.open(self.config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w') as configfile:
            config_parser.write(configfile)


class AuthenticationSection:
    refresh_token: str


class PullConfig(Config):
    auth: AuthenticationSection


config = PullConfig()
