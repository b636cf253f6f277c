"""Rewrite the `.nuspec` manifest embedded in a `.nupkg` archive.

A `.nupkg` is a zip archive whose root holds a single `.nuspec` XML manifest
next to the package content. Only the manifest entry is rewritten; every
other entry is copied with the same name, order, timestamps, compression
method and bytes.
"""

from __future__ import annotations

import copy
import io
import zipfile
from collections.abc import Iterable
from xml.etree import ElementTree

from models.edits import MUTATION_FIELDS
from services.exceptions.archive import CorruptArchiveError, ManifestMissingError

__all__ = ["MANIFEST_FIELDS", "find_manifest_entry", "read_nupkg_manifest", "rewrite_nupkg_manifest"]

MANIFEST_FIELDS = frozenset(element for _, element in MUTATION_FIELDS)


def find_manifest_entry(archive: zipfile.ZipFile) -> zipfile.ZipInfo:
    """Return the root-level `.nuspec` entry of an archive.

    Raises:
        ManifestMissingError: If the archive has no root-level `.nuspec` entry.
    """
    for info in archive.infolist():
        name = info.filename
        if "/" not in name and "\\" not in name and name.lower().endswith(".nuspec"):
            return info
    raise ManifestMissingError(entries=len(archive.infolist()))


def _open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, EOFError, ValueError) as e:
        raise CorruptArchiveError(f"Package archive is not a valid zip file: {e}") from e


def _read_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
    try:
        return archive.read(info)
    except (zipfile.BadZipFile, EOFError, NotImplementedError, RuntimeError) as e:
        raise CorruptArchiveError(f"Cannot read archive entry {info.filename}: {e}", entry=info.filename) from e


def _parse_manifest(raw: bytes, entry_name: str) -> tuple[ElementTree.Element, ElementTree.Element]:
    """Parse a manifest and move its elements out of the document namespace.

    The document namespace is kept as a plain `xmlns` attribute on the root so
    serialization writes it back as the default namespace without prefixes.
    """
    parser = ElementTree.XMLParser(target=ElementTree.TreeBuilder(insert_comments=True, insert_pis=True))
    try:
        root = ElementTree.fromstring(raw, parser=parser)
    except ElementTree.ParseError as e:
        raise CorruptArchiveError(f"Manifest {entry_name} is not valid XML: {e}", entry=entry_name) from e

    if root.tag.startswith("{"):
        namespace = root.tag[1 : root.tag.index("}")]
        prefix = f"{{{namespace}}}"
        for element in root.iter():
            if isinstance(element.tag, str) and element.tag.startswith(prefix):
                element.tag = element.tag[len(prefix) :]
        root.attrib = {"xmlns": namespace, **root.attrib}

    metadata = root.find("metadata")
    if metadata is None:
        raise CorruptArchiveError(f"Manifest {entry_name} has no metadata element", entry=entry_name)
    return root, metadata


def read_nupkg_manifest(data: bytes) -> dict[str, str]:
    """Return the manifest metadata of a package archive.

    Args:
        data: The `.nupkg` bytes.

    Returns:
        Mapping of metadata element name to its text. Elements with child
        elements (dependencies, references) are skipped.
    """
    with _open_archive(data) as archive:
        info = find_manifest_entry(archive)
        _, metadata = _parse_manifest(_read_entry(archive, info), info.filename)

    return {
        child.tag: child.text or ""
        for child in metadata
        if isinstance(child.tag, str) and not len(child)
    }


def _apply_mutations(metadata: ElementTree.Element, mutations: Iterable[tuple[str, str | None]]) -> None:
    for field, value in mutations:
        if field not in MANIFEST_FIELDS:
            raise ValueError(f"Unsupported manifest field: {field}")
        if value is None:
            continue
        element = metadata.find(field)
        if element is None:
            element = ElementTree.SubElement(metadata, field)
        element.text = value


def rewrite_nupkg_manifest(data: bytes, mutations: Iterable[tuple[str, str | None]]) -> bytes:
    """Return a copy of a package archive with its manifest fields replaced.

    Args:
        data: The `.nupkg` bytes.
        mutations: Ordered (element, value) pairs; later pairs win when they
            target the same element. `None` values are ignored.

    Returns:
        The rewritten archive. Same inputs always give identical bytes.

    Raises:
        CorruptArchiveError: If the archive or its manifest cannot be parsed.
        ManifestMissingError: If the archive has no manifest.
        ValueError: If a mutation targets an unsupported field.
    """
    output = io.BytesIO()
    with _open_archive(data) as source:
        manifest_info = find_manifest_entry(source)
        root, metadata = _parse_manifest(_read_entry(source, manifest_info), manifest_info.filename)
        _apply_mutations(metadata, mutations)
        manifest = ElementTree.tostring(root, encoding="utf-8", xml_declaration=True)

        with zipfile.ZipFile(output, "w") as target:
            target.comment = source.comment
            for info in source.infolist():
                payload = manifest if info is manifest_info else _read_entry(source, info)
                # writestr updates sizes and offsets on the ZipInfo it is given
                target.writestr(copy.copy(info), payload)

    return output.getvalue()
