"""iascable - resolve infrastructure bills of material against a module catalog.

    Returns:
        int: Exit code
"""
import json
import logging
import sys

import yaml

from constants import Constants, ExitCodes, OutputFormats
from common.logging_utils import configure_logging, extra_context, is_debug_enabled, safe_url
from args import parse_args
from cli_config import apply_config_overrides
from errors import (
    BillOfMaterialModuleParsingError,
    BillOfMaterialParsingError,
    CatalogLoadError,
    ResolutionError,
)
from bom.validation import validate_bill_of_material
from catalog.loader import load_bill_of_material, load_catalog
from resolver.service import resolve_bill_of_material
from versioning.matcher import sort_versions

logger = logging.getLogger(__name__)


def _setup_logging(args):
    configure_logging(getattr(args, "LOG_LEVEL", None))
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def _exit_code_for(exc):
    """Map a library error onto a CLI exit code."""
    if isinstance(exc, CatalogLoadError):
        if exc.url.startswith(("http://", "https://")):
            return ExitCodes.CONNECTION_ERROR
        return ExitCodes.FILE_ERROR
    if isinstance(exc, (BillOfMaterialParsingError, BillOfMaterialModuleParsingError)):
        return ExitCodes.FILE_ERROR
    return ExitCodes.RESOLUTION_ERROR


def _output_format(args):
    fmt = getattr(args, "OUTPUT_FORMAT", None)
    if fmt:
        return fmt
    output = getattr(args, "OUTPUT", None)
    if output and output.lower().endswith(".json"):
        return OutputFormats.JSON.value
    return OutputFormats.YAML.value


def render(data, fmt):
    """Serialize ``data`` as YAML or JSON text."""
    if fmt == OutputFormats.JSON.value:
        return json.dumps(data, ensure_ascii=False, indent=4)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


def write_output(text, path=None):
    """Write ``text`` to ``path`` or stdout."""
    if not path:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
        return
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)
    logging.info("Output has been successfully written to: %s", path)


def _load_catalog():
    urls = Constants.CATALOG_URLS or [Constants.DEFAULT_CATALOG_URL]
    return load_catalog(urls)


def run_resolve(args):
    """Resolve each input BOM and emit the resolved modules and pinned BOM."""
    catalog = _load_catalog()
    results = []
    for path in args.INPUT:
        bom = load_bill_of_material(path)
        result = resolve_bill_of_material(
            catalog,
            bom,
            strict=Constants.STRICT_RESOLUTION,
            platform=Constants.PLATFORM,
            provider=Constants.PROVIDER,
        )
        logging.info("Resolved %s: %s", bom.name, ", ".join(m.alias for m in result.modules))
        results.append(result.to_dict())

    data = results[0] if len(results) == 1 else results
    write_output(render(data, _output_format(args)), getattr(args, "OUTPUT", None))
    return ExitCodes.SUCCESS


def run_validate(args):
    """Validate module config of each input BOM and check that it resolves."""
    catalog = _load_catalog()
    for path in args.INPUT:
        bom = load_bill_of_material(path)
        validate_bill_of_material(catalog, bom)
        resolve_bill_of_material(
            catalog,
            bom,
            strict=Constants.STRICT_RESOLUTION,
            platform=Constants.PLATFORM,
            provider=Constants.PROVIDER,
        )
        logging.info("Bill of material is valid: %s", bom.name)
    return ExitCodes.SUCCESS


def run_catalog(args):  # pylint: disable=unused-argument
    """List catalog modules with their latest version."""
    catalog = _load_catalog().filter(platform=Constants.PLATFORM, provider=Constants.PROVIDER)
    rows = []
    for module in catalog.modules:
        versions = sort_versions(module.versions)
        rows.append({
            "name": module.name,
            "id": module.id,
            "latest": versions[0].version if versions else None,
        })
    write_output(render(rows, OutputFormats.YAML.value))
    return ExitCodes.SUCCESS


COMMANDS = {
    "resolve": run_resolve,
    "validate": run_validate,
    "catalog": run_catalog,
}


def run(argv=None):
    """Parse ``argv``, run the selected command and return its exit code."""
    args = parse_args(argv)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND)
        )

    try:
        apply_config_overrides(args)
    except (OSError, yaml.YAMLError) as e:
        logging.error("Unable to read config file: %s", e)
        return ExitCodes.FILE_ERROR.value

    try:
        code = COMMANDS[args.COMMAND](args)
    except ResolutionError as e:
        code = _exit_code_for(e)
        if isinstance(e, CatalogLoadError):
            logging.error("Unable to load %s: %s", safe_url(e.url), e.reason)
        else:
            logging.error("%s", e)
    except OSError as e:
        logging.error("File couldn't be written to disk: %s", e)
        code = ExitCodes.FILE_ERROR

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.COMMAND,
                                outcome=code.name.lower())
        )
    return code.value


def main():
    """Main function of the program."""
    sys.exit(run())


if __name__ == "__main__":
    main()
