"""tfpluginschema CLI entrypoint."""

import argparse
import json
import sys
from typing import Any, List, Optional

from tfpluginschema.config import Settings, configure_logging, load_config
from tfpluginschema.exceptions import TFPluginSchemaError
from tfpluginschema.registry.request import ProviderRequest
from tfpluginschema.server import SchemaServer

_LIST_KINDS = {
    "resources": "list_resources",
    "data-sources": "list_data_sources",
    "functions": "list_functions",
    "ephemeral-resources": "list_ephemeral_resources",
}


def build_server(settings: Settings) -> SchemaServer:
    return SchemaServer.from_settings(settings)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _request(args: argparse.Namespace) -> ProviderRequest:
    return ProviderRequest.parse(args.provider, version=getattr(args, "version", "") or "", registry=args.registry)


def cmd_versions(args: argparse.Namespace) -> int:
    versions = args.server.available_versions(_request(args))
    _emit([str(v) for v in versions])
    return 0


def cmd_schema(args: argparse.Namespace) -> int:
    server: SchemaServer = args.server
    request = _request(args)

    if args.resource:
        result = server.resource_schema(request, args.resource)
    elif args.data_source:
        result = server.data_source_schema(request, args.data_source)
    elif args.ephemeral_resource:
        result = server.ephemeral_resource_schema(request, args.ephemeral_resource)
    elif args.function:
        result = server.function_schema(request, args.function)
    elif args.provider_config:
        result = server.provider_schema(request)
    else:
        _emit(server.schema(request).to_dict())
        return 0

    _emit(None if result is None else result.model_dump(mode="json", by_alias=True, exclude_none=True))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    names = getattr(args.server, _LIST_KINDS[args.kind])(_request(args))
    _emit(names)
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tfpluginschema",
        description="Fetch provider plugin schemas from a provider registry",
    )
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--registry", help="Registry base URL (overrides configuration)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    versions_parser = subparsers.add_parser("versions", help="List published provider versions")
    versions_parser.add_argument("provider", help="Provider address, NAMESPACE/NAME")
    versions_parser.set_defaults(func=cmd_versions)

    schema_parser = subparsers.add_parser("schema", help="Print a provider schema as JSON")
    schema_parser.add_argument("provider", help="Provider address, NAMESPACE/NAME")
    schema_parser.add_argument("--version", default="", help="Exact version or constraint, latest if omitted")
    which = schema_parser.add_mutually_exclusive_group()
    which.add_argument("--resource", help="Only this resource schema")
    which.add_argument("--data-source", help="Only this data source schema")
    which.add_argument("--ephemeral-resource", help="Only this ephemeral resource schema")
    which.add_argument("--function", help="Only this function signature")
    which.add_argument(
        "--provider",
        dest="provider_config",
        action="store_true",
        help="Only the provider configuration schema",
    )
    schema_parser.set_defaults(func=cmd_schema)

    list_parser = subparsers.add_parser("list", help="List schema names of one kind")
    list_parser.add_argument("provider", help="Provider address, NAMESPACE/NAME")
    list_parser.add_argument("--version", default="", help="Exact version or constraint, latest if omitted")
    list_parser.add_argument("--kind", choices=sorted(_LIST_KINDS), default="resources")
    list_parser.set_defaults(func=cmd_list)

    parser.set_defaults(func=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code for the shell
            - 0: Success
            - 1: Library or configuration error
            - 2: Incorrect usage (shows help)
            - 130: Interrupted by user (Ctrl+C)
    """
    parser = _parser()
    args = parser.parse_args(argv)

    if args.func is None:
        parser.print_help()
        return 2

    try:
        settings = load_config(args.config)
    except TFPluginSchemaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.logging, verbose=args.verbose)

    try:
        with build_server(settings) as server:
            args.server = server
            return int(args.func(args))
    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except (TFPluginSchemaError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
