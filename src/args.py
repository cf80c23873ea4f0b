"""Argument parsing functionality for iascable."""

import argparse
from constants import Constants


def _add_common_arguments(parser):
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)


def _add_catalog_arguments(parser):
    parser.add_argument("-u", "--catalog-url",
                        dest="CATALOG_URLS",
                        help="Catalog URL or path; may be given more than once",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("--platform",
                        dest="PLATFORM",
                        help="Only consider modules that support this platform",
                        action="store",
                        type=str)
    parser.add_argument("--provider",
                        dest="PROVIDER",
                        help="Cloud provider; ibm modules are excluded for other providers",
                        action="store",
                        type=str)


def _add_bom_arguments(parser):
    parser.add_argument("-i", "--input",
                        dest="INPUT",
                        help="Bill of material file or URL; may be given more than once",
                        action="append",
                        type=str,
                        required=True)
    parser.add_argument("--no-strict",
                        dest="STRICT",
                        help="Pick the first candidate instead of failing on ambiguous dependencies",
                        action="store_false",
                        default=None)


def build_parser():
    """Build the argument parser with the resolve, validate and catalog commands."""
    parser = argparse.ArgumentParser(
        prog="iascable",
        description=(
            "iascable - resolve infrastructure bills of material against a module catalog"
        ),
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="COMMAND", metavar="command")
    subparsers.required = True

    resolve = subparsers.add_parser("resolve", help="Resolve a bill of material into pinned modules")
    _add_catalog_arguments(resolve)
    _add_bom_arguments(resolve)
    resolve.add_argument("-o", "--output",
                         dest="OUTPUT",
                         help="Path to output file",
                         action="store",
                         type=str)
    resolve.add_argument("-f", "--format",
                         dest="OUTPUT_FORMAT",
                         help="Output format (yaml or json). If not specified, inferred from --output extension; defaults to yaml.",
                         action="store",
                         type=str.lower,
                         choices=Constants.SUPPORTED_FORMATS)
    _add_common_arguments(resolve)

    validate = subparsers.add_parser("validate", help="Validate bill of material module config and resolution")
    _add_catalog_arguments(validate)
    _add_bom_arguments(validate)
    _add_common_arguments(validate)

    catalog = subparsers.add_parser("catalog", help="List the modules in the catalog")
    _add_catalog_arguments(catalog)
    _add_common_arguments(catalog)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
