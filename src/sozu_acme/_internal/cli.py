"""sozu-acme command line argument parser"""
import copy
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List

import configargparse

import sozu_acme
from sozu_acme._internal import channel
from sozu_acme._internal import configuration
from sozu_acme._internal import constants


def flag_default(name: str) -> Any:
    """Default value for CLI flag."""
    # Copy so that the caller cannot change the defaults.
    return copy.deepcopy(constants.CLI_DEFAULTS[name])


def _unquote(value: Any) -> Any:
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        return value[1:-1]
    return value


class ProxyConfigFileParser(configargparse.DefaultConfigFileParser):
    """Reads the top-level ``key = value`` pairs of the proxy's TOML file.

    Everything from the first table header on belongs to listeners and
    applications and is skipped, and TOML string quotes are removed.

    """
    def get_syntax_description(self) -> str:
        return ("Top-level 'key = value' lines of the sozu configuration file, "
                "e.g. command_socket = \"/var/run/sozu/sock\".")

    def parse(self, stream: Iterable[str]) -> Dict[str, Any]:
        top_level: List[str] = []
        for line in stream:
            if line.lstrip().startswith('['):
                break
            top_level.append(line)
        items = super().parse(top_level)
        return type(items)((key, _unquote(value)) for key, value in items.items())


def prepare_and_parse_args(args: List[str]) -> configuration.NamespaceConfig:
    """Returns parsed command line arguments.

    :param list args: command line arguments with the program name removed

    :returns: parsed command line arguments
    :rtype: configuration.NamespaceConfig

    """
    parser = configargparse.ArgParser(
        prog='sozu-acme',
        description="ACME (Let's Encrypt) configuration tool for sozu",
        args_for_setting_config_path=['-c', '--config'],
        config_arg_help_message='sozu configuration file, its command_socket is used',
        config_file_parser_class=ProxyConfigFileParser,
        default_config_files=flag_default('config_files'),
        ignore_unknown_config_file_keys=True,
    )

    parser.add_argument(
        '--version', action='version',
        version='%(prog)s {0}'.format(sozu_acme.__version__))
    parser.add_argument(
        '-v', '--verbose', dest='verbose_count', action='count',
        default=flag_default('verbose_count'),
        help='This flag can be used multiple times to incrementally increase '
             'the verbosity of output, e.g. -vvv.')
    parser.add_argument(
        '-q', '--quiet', dest='quiet', action='store_true',
        default=flag_default('quiet'),
        help='Silence all output except errors.')
    parser.add_argument(
        '--debug', action='store_true', default=flag_default('debug'),
        help='Show tracebacks in case of errors.')

    application = parser.add_argument_group('application')
    application.add_argument(
        '--domain', metavar='DOMAIN', required=True,
        help="application's domain name")
    application.add_argument(
        '--email', metavar='EMAIL', required=True,
        help='registration email')
    application.add_argument(
        '--id', metavar='APP_ID', required=True,
        help='application identifier')

    paths = parser.add_argument_group('paths')
    paths.add_argument(
        '--certificate', dest='cert_path', metavar='PATH', required=True,
        help='certificate path')
    paths.add_argument(
        '--chain', dest='chain_path', metavar='PATH', required=True,
        help='certificate chain path')
    paths.add_argument(
        '--key', dest='key_path', metavar='PATH', required=True,
        help='key path')

    proxy = parser.add_argument_group('proxy')
    proxy.add_argument(
        '--command-socket', '--command_socket', dest='command_socket', metavar='PATH',
        default=flag_default('command_socket'),
        help='path of the proxy command socket (default: command_socket '
             'from the configuration file)')
    proxy.add_argument(
        '--framing', choices=sorted(channel.FRAMERS), default=flag_default('framing'),
        help='message framing used on the command socket: "length" prefixes each '
             'message with its size, "nul" terminates it with a NUL byte as early '
             'sozu releases do (default: %(default)s)')
    proxy.add_argument(
        '--max-message-size', type=int, metavar='BYTES',
        default=flag_default('max_message_size'),
        help='largest message exchanged with the proxy (default: %(default)s)')
    proxy.add_argument(
        '--channel-timeout', type=float, metavar='SECONDS',
        default=flag_default('channel_timeout'),
        help='give up when the proxy does not answer in time (default: wait forever)')
    proxy.add_argument(
        '--settle-delay', type=float, metavar='SECONDS',
        default=flag_default('settle_delay'),
        help='pause between routing the challenge and asking for its '
             'validation (default: %(default)s)')

    acme = parser.add_argument_group('acme')
    acme.add_argument(
        '--server', metavar='URL', default=flag_default('server'),
        help='ACME directory URL (default: %(default)s)')
    acme.add_argument(
        '--staging', action='store_true', default=flag_default('staging'),
        help="use the Let's Encrypt staging server")
    acme.add_argument(
        '--validation-timeout', type=float, metavar='SECONDS',
        default=flag_default('validation_timeout'),
        help='give up when the challenge request does not arrive in time '
             '(default: wait forever)')

    return configuration.NamespaceConfig(parser.parse_args(args))
