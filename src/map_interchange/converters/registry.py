"""
Registry of the interchange formats.

Each converter registers itself under its lower-cased ``format_name``.
Lookups accept that name, any of the converter's extensions with or
without the leading dot (``json``, ``.kmz``), or a file path whose suffix
names the format. Every lookup returns a fresh converter bound to the
caller's ``InterchangeConfig``.
"""

from pathlib import Path
from typing import Any, Optional

from map_interchange.config import InterchangeConfig
from map_interchange.converters.base import BaseConverter


class ConverterRegistry:
    """Format name and extension lookup for the GeoJSON/GPX/KML/KMZ converters."""

    _converters: dict[str, type[BaseConverter]] = {}
    _extension_map: dict[str, str] = {}

    @classmethod
    def register(cls, converter_class: type[BaseConverter]) -> type[BaseConverter]:
        """
        Register a converter class; usable as a class decorator.

        A later registration for the same format name or extension replaces
        the earlier one.
        """
        format_name = converter_class.format_name.lower()
        cls._converters[format_name] = converter_class
        for ext in converter_class.file_extensions:
            cls._extension_map[ext.lower()] = format_name
        return converter_class

    @classmethod
    def resolve_format(cls, name: str) -> Optional[str]:
        """
        Registered format name for a format name or an extension alias.

        ``"GeoJSON"``, ``"json"`` and ``".geojson"`` all resolve to
        ``"geojson"``; anything unknown gives None.
        """
        key = name.strip().lower()
        if key in cls._converters:
            return key
        extension = key if key.startswith(".") else f".{key}"
        return cls._extension_map.get(extension)

    @classmethod
    def format_for_path(cls, file_path: str | Path) -> Optional[str]:
        """Registered format name implied by a file's suffix, if any."""
        return cls._extension_map.get(Path(file_path).suffix.lower())

    @classmethod
    def get_converter(
        cls,
        format_name: str | None = None,
        file_path: str | Path | None = None,
        config: Optional[InterchangeConfig] = None,
    ) -> BaseConverter:
        """
        Build a converter for an explicit format or a file path.

        ``format_name`` wins over ``file_path`` when both are given, so the
        CLI's ``--from``/``--to`` options can override a misleading suffix.

        Raises:
            ValueError: If neither argument is given or the format is unknown.
        """
        if format_name:
            resolved = cls.resolve_format(format_name)
            if resolved is None:
                raise ValueError(
                    f"Unknown format: {format_name}. "
                    f"Supported: {', '.join(sorted(cls._converters))}"
                )
            return cls._converters[resolved](config)

        if file_path:
            resolved = cls.format_for_path(file_path)
            if resolved is None:
                raise ValueError(
                    f"Unknown file extension: {Path(file_path).suffix.lower() or '(none)'}. "
                    f"Supported: {', '.join(sorted(cls._extension_map))}"
                )
            return cls._converters[resolved](config)

        raise ValueError("Either format_name or file_path must be provided")

    @classmethod
    def get_supported_formats(cls) -> list[dict[str, Any]]:
        """Metadata of every registered converter, ordered by format name."""
        formats = []
        for _, converter_class in sorted(cls._converters.items()):
            info = converter_class.get_info()
            info["binary"] = converter_class.binary
            formats.append(info)
        return formats

    @classmethod
    def is_supported(cls, file_path: str | Path) -> bool:
        """True if the file's suffix belongs to a registered format."""
        return cls.format_for_path(file_path) is not None


def get_converter(
    format_name: str | None = None,
    file_path: str | Path | None = None,
    config: Optional[InterchangeConfig] = None,
) -> BaseConverter:
    """Shortcut for ``ConverterRegistry.get_converter``."""
    return ConverterRegistry.get_converter(format_name, file_path, config)


def get_supported_formats() -> list[dict[str, Any]]:
    return ConverterRegistry.get_supported_formats()


def register_converter(converter_class: type[BaseConverter]) -> type[BaseConverter]:
    return ConverterRegistry.register(converter_class)


def _register_builtin_converters() -> None:
    # Importing the modules runs their @register_converter decorators.
    from map_interchange.converters import (  # noqa: F401
        geojson,
        gpx,
        kml,
        kmz,
    )


_register_builtin_converters()
