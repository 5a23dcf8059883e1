"""
Command-line interface for Map Interchange.
"""

import logging
import sys
from pathlib import Path

import click

from map_interchange import __version__
from map_interchange.config import InterchangeConfig
from map_interchange.converters import BaseConverter, get_converter, get_supported_formats
from map_interchange.exceptions import InterchangeError
from map_interchange.models import FeatureSet
from map_interchange.share import ShareCodec
from map_interchange.validators import validate_features

logger = logging.getLogger(__name__)


# Custom help class for better formatting
class CustomGroup(click.Group):
    """Custom group with better help formatting."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Write the help into the formatter with additional info."""
        self.format_usage(ctx, formatter)
        self.format_help_text(ctx, formatter)
        self.format_options(ctx, formatter)
        self.format_commands(ctx, formatter)

        # Add examples section
        formatter.write_paragraph()
        with formatter.section("Examples"):
            formatter.write_text("mapx convert ride.gpx ride.geojson")
            formatter.write_text('mapx convert trips.kmz trips.kml --name "Summer Trips"')
            formatter.write_text("mapx share encode route.gpx")
            formatter.write_text("mapx share decode <STRING> shared.kml")
            formatter.write_text("mapx formats")


def _load_config() -> InterchangeConfig:
    try:
        return InterchangeConfig.from_env()
    except ValueError as e:
        raise click.ClickException(str(e))


def _read_features(
    converter: BaseConverter, file_path: str
) -> tuple[FeatureSet, list[str]]:
    """Read a file and parse it, returning features and warnings."""
    data = Path(file_path).read_bytes()
    result = converter.parse(data)
    warnings = list(result.warnings)
    for error in result.errors:
        warnings.append(f"{error.get('path', 'input')}: {error.get('message')}")
    return result.features, warnings


def _write_output(
    converter: BaseConverter, features: FeatureSet, output_file: str, name: str
) -> None:
    output = converter.serialize(features, document_name=name)
    if isinstance(output, bytes):
        Path(output_file).write_bytes(output)
    else:
        Path(output_file).write_text(output, encoding="utf-8")


def _echo_warnings(warnings: list[str]) -> None:
    if warnings:
        click.echo(f"\n⚠️  Warnings ({len(warnings)}):")
        for warning in warnings[:10]:
            click.echo(f"   - {warning}")
        if len(warnings) > 10:
            click.echo(f"   ... and {len(warnings) - 10} more")


@click.group(cls=CustomGroup)
@click.version_option(version=__version__, prog_name="map-interchange")
@click.option("--verbose", "-v", is_flag=True, help="Log parser diagnostics to stderr")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """
    Map Interchange - Move map features between formats.

    Converts points, paths and areas between GeoJSON, GPX, KML and KMZ,
    keeping names, colours, elevations and activity IDs, and packs them
    into compact share strings.

    \b
    Optional environment variables:
      MAPX_DEFAULT_COLOR   Colour for features without one (default #E51B23)
      MAPX_PRECISION       Share-string coordinate precision (default 5)
      MAPX_PROVENANCE_KEY  Activity ID property name (default stravaId)

    \b
    For more help on a specific command:
      mapx COMMAND --help
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = _load_config()


@main.command()
def formats() -> None:
    """
    List all supported formats.

    \b
    Examples:
      mapx formats
    """
    click.echo("\n📁 Supported Formats\n")
    click.echo("-" * 60)

    for fmt in get_supported_formats():
        extensions = ", ".join(fmt["file_extensions"])
        click.echo(f"\n✅ {fmt['format_name']}")
        click.echo(f"   Extensions: {extensions}")
        if fmt["requires_packages"]:
            click.echo(f"   Requires: {', '.join(fmt['requires_packages'])}")
        else:
            click.echo("   Requires: (built-in)")
        if fmt["binary"]:
            click.echo("   Output: binary archive")

    click.echo("\n" + "-" * 60 + "\n")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_file", type=click.Path(dir_okay=False))
@click.option("--from", "from_format", help="Force the input format")
@click.option("--to", "to_format", help="Force the output format")
@click.option("--name", "-n", default="Map Export", show_default=True, help="Document name")
@click.pass_obj
def convert(
    config: InterchangeConfig,
    input_file: str,
    output_file: str,
    from_format: str | None,
    to_format: str | None,
    name: str,
) -> None:
    """
    Convert a map file to another format.

    Formats are detected from file extensions unless forced.

    \b
    Examples:
      mapx convert ride.gpx ride.geojson
      mapx convert places.kml places.kmz --name "Places"
      mapx convert export.json export.gpx --from geojson
    """
    click.echo(f"\n🔄 Converting: {input_file}")

    try:
        reader = get_converter(format_name=from_format, file_path=input_file, config=config)
        writer = get_converter(format_name=to_format, file_path=output_file, config=config)
        click.echo(f"   Format: {reader.format_name} → {writer.format_name}")

        features, warnings = _read_features(reader, input_file)
        _echo_warnings(warnings)
        _write_output(writer, features, output_file, name)
    except (InterchangeError, ValueError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Converted {len(features)} features to {output_file}")


@main.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--from", "from_format", help="Force the input format")
@click.option("--all", "show_all", is_flag=True, help="Show info-level findings too")
@click.pass_obj
def validate(
    config: InterchangeConfig,
    file_path: str,
    from_format: str | None,
    show_all: bool,
) -> None:
    """
    Check a map file for feature issues.

    \b
    Examples:
      mapx validate ride.gpx
      mapx validate places.kml --all
    """
    click.echo(f"\n🔍 Validating: {file_path}\n")

    try:
        converter = get_converter(format_name=from_format, file_path=file_path, config=config)
        click.echo(f"   Format: {converter.format_name}")
        features, warnings = _read_features(converter, file_path)
    except (InterchangeError, ValueError, OSError) as e:
        click.echo(f"\n❌ Validation failed: {e}")
        sys.exit(1)

    click.echo(f"   Features: {len(features)}")
    _echo_warnings(warnings)

    validation = validate_features(features)

    click.echo("\n📊 Feature Validation:")
    click.echo(f"   Valid features: {validation.valid_feature_count}/{validation.feature_count}")
    click.echo(f"   Warnings: {validation.warning_count}")
    click.echo(f"   Errors: {validation.error_count}")

    by_type: dict[str, list] = {}
    for w in validation.warnings:
        if not show_all and w.severity == "info":
            continue
        by_type.setdefault(w.warning_type, []).append(w)

    if by_type:
        click.echo("\n⚠️  Issues found:")
        for wtype, found in sorted(by_type.items()):
            click.echo(f"\n   [{wtype}] ({len(found)} occurrences)")
            for w in found[:3]:
                loc = f"feature {w.feature_index}" if w.feature_index is not None else "global"
                click.echo(f"     • {loc}: {w.message}")
            if len(found) > 3:
                click.echo(f"     ... and {len(found) - 3} more")

    if validation.valid:
        click.echo("\n✅ File is valid")
    else:
        click.echo("\n❌ File has errors")
        sys.exit(1)


@main.group()
def share() -> None:
    """Encode and decode share strings."""


@share.command("encode")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--from", "from_format", help="Force the input format")
@click.pass_obj
def share_encode(config: InterchangeConfig, file_path: str, from_format: str | None) -> None:
    """
    Print a share string for the features in FILE_PATH.

    \b
    Examples:
      mapx share encode route.gpx
    """
    try:
        converter = get_converter(format_name=from_format, file_path=file_path, config=config)
        features, warnings = _read_features(converter, file_path)
    except (InterchangeError, ValueError, OSError) as e:
        raise click.ClickException(str(e))

    for warning in warnings:
        logger.warning("%s", warning)

    encoded = ShareCodec(config).encode(features)
    if encoded is None:
        raise click.ClickException("Nothing to share: no features found")
    click.echo(encoded)


@share.command("decode")
@click.argument("share_string")
@click.argument("output_file", type=click.Path(dir_okay=False))
@click.option("--to", "to_format", help="Force the output format")
@click.option("--name", "-n", default="Shared Features", show_default=True, help="Document name")
@click.pass_obj
def share_decode(
    config: InterchangeConfig,
    share_string: str,
    output_file: str,
    to_format: str | None,
    name: str,
) -> None:
    """
    Decode SHARE_STRING and write the features to OUTPUT_FILE.

    \b
    Examples:
      mapx share decode <STRING> shared.geojson
      mapx share decode <STRING> shared.kmz --name "From a friend"
    """
    try:
        writer = get_converter(format_name=to_format, file_path=output_file, config=config)
        features = ShareCodec(config).decode(share_string)
        _write_output(writer, features, output_file, name)
    except (InterchangeError, ValueError, OSError) as e:
        raise click.ClickException(str(e))

    click.echo(f"\n✅ Decoded {len(features)} features to {output_file}")


if __name__ == "__main__":
    main()
