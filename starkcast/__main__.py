#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
import argcomplete
import argparse

from argcomplete.completers import FilesCompleter, DirectoriesCompleter

from starkcast.config_user import UserConfig
from starkcast.utils.progress_printer import fail_print, success_print, warn_print


def parse_config_doc():
    import textwrap
    from typing import get_type_hints
    __ucfg = UserConfig()

    docs = {}
    for name, prop in vars(UserConfig).items():
        if name.startswith('_') or not isinstance(prop, property):
            continue
        t = get_type_hints(prop.fget)['return']
        doc = prop.__doc__
        choices = None
        if hasattr(__ucfg, f'_{name}_values'):
            choices = getattr(__ucfg, f'_{name}_values')
        default_val = getattr(__ucfg, name)
        docs[name] = (
            f"type: {t}\n\n"
            f"{textwrap.dedent(doc).strip()}\n\n"
            f"Default value: {default_val}", t, default_val, choices)
    return docs


def parse_arguments(args=None):
    class ShowSuppressedInHelpFormatter(argparse.RawTextHelpFormatter):
        def add_usage(self, usage, actions, groups, prefix=None):
            if usage is not argparse.SUPPRESS:
                actions = [action for action in actions if action.metavar != '<cfg_val>']
                args = usage, actions, groups, prefix
                self._add_item(self._format_usage, args)

    main_parser = argparse.ArgumentParser(prog='starkcast')
    config_files = ('json', )

    msg = 'Path to local configuration file (defaults to "config.json" in cwd). ' \
          'This file (if it exists), overrides settings defined in the global configuration.'
    main_parser.add_argument('--config-file', default='config.json', metavar='<config_file>', help=msg).completer = FilesCompleter(config_files)

    # Shared 'config' parser
    config_parser = argparse.ArgumentParser(add_help=False)
    msg = 'These parameters can be used to override settings defined (and documented) in config_user.py'
    cfg_group = config_parser.add_argument_group(title='Configuration Options', description=msg)

    # Expose config_user.py options via command line arguments, they are supported in all parsers
    cfg_docs = parse_config_doc()

    def add_config_args(parser, arg_names):
        for name in arg_names:
            doc, t, defval, choices = cfg_docs[name]

            if t is bool:
                if defval:
                    parser.add_argument(f'--no-{name.replace("_", "-")}', dest=name, help=doc, action='store_const', const=False)
                else:
                    parser.add_argument(f'--{name.replace("_", "-")}', dest=name, help=doc, action='store_const', const=True)
            elif t is int:
                parser.add_argument(f'--{name.replace("_", "-")}', type=int, dest=name, metavar='<cfg_val>', help=doc)
            elif t is float:
                parser.add_argument(f'--{name.replace("_", "-")}', type=float, dest=name, metavar='<cfg_val>', help=doc)
            else:
                arg = parser.add_argument(f'--{name.replace("_", "-")}', dest=name, metavar='<cfg_val>', help=doc,
                                          choices=choices)
                if name.endswith('dir'):
                    arg.completer = DirectoriesCompleter()
    add_config_args(cfg_group, cfg_docs.keys())

    # Shared account/output options
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument('--url', dest='rpc_url', metavar='<url>', help='Url of the Starknet JSON-RPC endpoint (alias of --rpc-url)')
    common_parser.add_argument('--account-address', metavar='<address>', help='Address of the account which signs transactions')
    common_parser.add_argument('--private-key', metavar='<key>', help='Private key of the account')
    common_parser.add_argument('--account-cairo-version', type=int, default=1, choices=[0, 1], metavar='<version>',
                               help='Cairo version of the account contract (determines the __execute__ calldata layout)')
    fmt_group = common_parser.add_mutually_exclusive_group()
    fmt_group.add_argument('--hex-format', dest='value_format', action='store_const', const='hex', help='Print all numbers as hex')
    fmt_group.add_argument('--int-format', dest='value_format', action='store_const', const='int', help='Print all numbers as decimal')
    common_parser.add_argument('--json', action='store_true', help='Print results as json')
    common_parser.add_argument('--wait', dest='wait_for_acceptance', action='store_const', const=True,
                               help='Wait until transactions are accepted (alias of the default)')
    common_parser.add_argument('--no-wait', dest='wait_for_acceptance', action='store_const', const=False,
                               help='Return as soon as transactions were submitted')
    common_parser.add_argument('--log', action='store_true', help='enable logging')
    parents = [common_parser, config_parser]

    # Shared transaction options
    tx_parser = argparse.ArgumentParser(add_help=False)
    tx_parser.add_argument('--max-fee', type=lambda s: int(s, 0), metavar='<fee>', help='Maximum fee (estimated if omitted)')

    subparsers = main_parser.add_subparsers(title='actions', dest='cmd', required=True)

    # 'declare' parser
    declare_parser = subparsers.add_parser('declare', parents=[tx_parser] + parents, help='Declare a contract class.', formatter_class=ShowSuppressedInHelpFormatter)
    msg = 'Contract name (looked up in the artifacts directory) or path to a *.contract_class.json file'
    declare_parser.add_argument('contract', help=msg, metavar='<contract>').completer = FilesCompleter(('json', ))

    # 'deploy' parser
    deploy_parser = subparsers.add_parser('deploy', parents=[tx_parser] + parents, help='Deploy a declared class via the universal deployer.', formatter_class=ShowSuppressedInHelpFormatter)
    deploy_parser.add_argument('class_hash', help='Hash of the declared class', metavar='<class_hash>')
    deploy_parser.add_argument('constructor_calldata', nargs='*', help='Constructor arguments', metavar='<args>...')
    deploy_parser.add_argument('--salt', metavar='<salt>', help='Salt for the address computation (random if --unique and omitted)')
    deploy_parser.add_argument('--unique', action='store_true', help='Mix the account address into the salt')

    # 'invoke' parser
    invoke_parser = subparsers.add_parser('invoke', parents=[tx_parser] + parents, help='Invoke a contract entrypoint in a transaction.', formatter_class=ShowSuppressedInHelpFormatter)
    invoke_parser.add_argument('contract_address', metavar='<address>', help='Address of the contract')
    invoke_parser.add_argument('function', metavar='<function>', help='Entrypoint name')
    invoke_parser.add_argument('calldata', nargs='*', metavar='<args>...', help='Calldata')

    # 'call' parser
    call_parser = subparsers.add_parser('call', parents=parents, help='Call a view function (no transaction).', formatter_class=ShowSuppressedInHelpFormatter)
    call_parser.add_argument('contract_address', metavar='<address>', help='Address of the contract')
    call_parser.add_argument('function', metavar='<function>', help='Entrypoint name')
    call_parser.add_argument('calldata', nargs='*', metavar='<args>...', help='Calldata')
    call_parser.add_argument('--block-id', default='latest', metavar='<block_id>', help='Block to execute the call against (latest, pending or a block hash)')

    # 'multicall' parser
    multicall_parser = subparsers.add_parser('multicall', help='Execute several calls in one transaction.')
    multicall_sub = multicall_parser.add_subparsers(title='multicall actions', dest='multicall_cmd', required=True)
    mrun_parser = multicall_sub.add_parser('run', parents=[tx_parser] + parents, help='Run the calls listed in a json file.', formatter_class=ShowSuppressedInHelpFormatter)
    msg = 'Json file containing a list of {"contract_address": ..., "function": ..., "calldata": [...]} objects'
    mrun_parser.add_argument('path', metavar='<calls_file>', help=msg).completer = FilesCompleter(config_files)
    mnew_parser = multicall_sub.add_parser('new', parents=parents, help='Print or write a template calls file for multicall run.', formatter_class=ShowSuppressedInHelpFormatter)
    mnew_parser.add_argument('output_path', nargs='?', metavar='<output_path>', help='Where to write the template (printed if omitted)')
    mnew_parser.add_argument('--overwrite', action='store_true', help='Replace an existing file at output_path')

    # 'wait' parser
    wait_parser = subparsers.add_parser('wait', parents=parents, help='Wait until a transaction is accepted.', formatter_class=ShowSuppressedInHelpFormatter)
    wait_parser.add_argument('transaction_hash', metavar='<tx_hash>', help='Transaction hash')
    wait_parser.add_argument('--timeout', type=float, metavar='<seconds>', help='Seconds to wait (defaults to confirmation_timeout)')

    # 'script' parser
    script_parser = subparsers.add_parser('script', parents=parents, help='Run a deployment script.', formatter_class=ShowSuppressedInHelpFormatter)
    script_parser.add_argument('script', metavar='<script.py>', help='Python file executed with declare, deploy, invoke, call and wait_for in scope').completer = FilesCompleter(('py', ))

    # 'show-config' parser
    subparsers.add_parser('show-config', parents=[config_parser], help='Print the effective configuration.', formatter_class=ShowSuppressedInHelpFormatter)

    # parse
    argcomplete.autocomplete(main_parser, always_complete_options=False)
    a = main_parser.parse_args(args)
    return a


MULTICALL_TEMPLATE = '''[
  {
    "contract_address": "0x0",
    "function": "function_name",
    "calldata": ["0x1", "2", "'short_string'"]
  }
]
'''


def _multicall_new(a):
    import os
    from starkcast.utils.helpers import format_result, save_to_file

    if a.output_path is None:
        print(MULTICALL_TEMPLATE, end='')
        return
    if os.path.exists(a.output_path) and not a.overwrite:
        with fail_print():
            print(f'ERROR: {a.output_path} already exists, pass --overwrite to replace it')
        exit(11)
    path = save_to_file(None, a.output_path, MULTICALL_TEMPLATE)
    print(format_result('multicall new', {'path': path, 'content': MULTICALL_TEMPLATE}, a.value_format or 'default', a.json))


def _make_context(a):
    from starkcast.config import cfg
    from starkcast.transaction.account import Account
    from starkcast.transaction.codec import encode_felt
    from starkcast.transaction.runtime import create_context

    account = None
    if getattr(a, 'account_address', None) is not None:
        if a.private_key is None:
            raise ValueError('--account-address requires --private-key')
        account = Account(encode_felt(a.account_address), encode_felt(a.private_key), a.account_cairo_version)
    return create_context(cfg.copy(), account)


def _run_command(a, ctx):
    import json
    from starkcast.transaction import operations
    from starkcast.transaction.types import RANDOM_SALT
    from starkcast.utils.helpers import read_file

    if a.cmd == 'declare':
        return operations.declare(ctx, a.contract, max_fee=a.max_fee).to_dict()
    elif a.cmd == 'deploy':
        salt = a.salt if a.salt is not None else (RANDOM_SALT if a.unique else None)
        return operations.deploy(ctx, a.class_hash, a.constructor_calldata, salt=salt, unique=a.unique, max_fee=a.max_fee).to_dict()
    elif a.cmd == 'invoke':
        return operations.invoke(ctx, a.contract_address, a.function, a.calldata, max_fee=a.max_fee).to_dict()
    elif a.cmd == 'call':
        return operations.call(ctx, a.contract_address, a.function, a.calldata, block_id=a.block_id).to_dict()
    elif a.cmd == 'multicall':
        entries = json.loads(read_file(a.path))
        calls = [(e['contract_address'], e['function'], e.get('calldata', [])) for e in entries]
        return operations.multicall(ctx, calls, max_fee=a.max_fee).to_dict()
    elif a.cmd == 'wait':
        outcome = operations.wait_for(ctx, a.transaction_hash, timeout=a.timeout)
        return {'transaction_hash': outcome.transaction_hash, 'status': outcome.status.value, 'reason': outcome.reason}
    else:
        raise NotImplementedError(a.cmd)


def main(args=None):
    # parse arguments
    a = parse_arguments(args)

    from starkcast import my_logging
    from starkcast.config import cfg
    from starkcast.errors.exceptions import BuildError, NetworkError, RpcError, TransactionFailedError, ExecutionRevertedError
    from starkcast.my_logging.log_context import log_context
    from starkcast.utils.helpers import format_result

    # Load configuration files
    try:
        cfg.load_configuration_from_disk(a.config_file)
    except Exception as e:
        with fail_print():
            print(f"ERROR: Failed to load configuration files\n{e}")
            exit(42)

    # Support for overriding any user config setting via command line
    # The evaluation order for configuration loading is:
    # Default values in config.py -> user config.json -> local config.json -> cmdline arguments
    # Settings defined at a later stage override setting values defined at an earlier stage
    override_dict = {}
    for name in vars(UserConfig):
        if name[0] != '_' and hasattr(a, name):
            val = getattr(a, name)
            if val is not None:
                override_dict[name] = val
    try:
        cfg.override_defaults(override_dict)
    except ValueError as e:
        with fail_print():
            print(f'ERROR: Invalid configuration\n{e}')
        exit(42)

    if a.cmd == 'show-config':
        import json
        print(json.dumps(cfg.export_settings(), indent=2))
        exit(0)

    if a.cmd == 'multicall' and a.multicall_cmd == 'new':
        _multicall_new(a)
        exit(0)

    # Enable logging
    if a.log:
        log_file = my_logging.get_log_file(parent_dir=cfg.log_dir, filename=a.cmd, include_timestamp=True, label=None)
        my_logging.prepare_logger(log_file)

    if a.json:
        # results are the only output
        cfg.verbosity = 0

    try:
        ctx = _make_context(a)
    except ValueError as e:
        with fail_print():
            print(f'ERROR: {e}')
        exit(2)

    if ctx.network.is_debug_backend() and not a.json:
        with warn_print():
            print('Using the in-process devnet, all state is discarded on exit')

    with log_context(a.cmd):
        try:
            if a.cmd == 'script':
                from starkcast.scripting import run_script
                run_script(ctx, a.script)
            else:
                result = _run_command(a, ctx)
                command = a.cmd if a.cmd != 'multicall' else 'multicall run'
                print(format_result(command, result, a.value_format or 'default', a.json))
        except (BuildError, ExecutionRevertedError) as e:
            with fail_print():
                print(f'ERROR: {e}')
            exit(3)
        except (NetworkError, RpcError) as e:
            with fail_print():
                print(f'ERROR: Network request failed\n{e}')
            exit(4)
        except TransactionFailedError as e:
            with fail_print():
                print(f'ERROR: {e}')
            exit(5)
        except ValueError as e:
            with fail_print():
                print(f'ERROR: invalid arguments\n{e}')
            exit(11)

    if not a.json and a.cmd == 'script':
        with success_print():
            print("Finished successfully")


if __name__ == '__main__':
    main()
