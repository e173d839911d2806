from __future__ import annotations
from enum import IntEnum
import logging
from typing import Mapping, Optional
import xml.etree.ElementTree as ET

from ..errors import PreconditionError, UnsupportedVersionError
from ..ir.model_ir import Graph
from ..ir.opset import OpSet
from .writer import graph_to_irv10

logger = logging.getLogger(__name__)

XML_EXTENSION = ".xml"
BIN_EXTENSION = "bin"


class Version(IntEnum):
    IR_V10 = 10


_WRITERS = {
    Version.IR_V10: graph_to_irv10,
}


def valid_xml_path(path: str) -> str:
    if len(path) <= len(XML_EXTENSION):
        raise PreconditionError(f'Path for xml file is too short: "{path}"')
    if not path.endswith(XML_EXTENSION):
        raise PreconditionError(
            f"Path for xml file doesn't contain file name with 'xml' extension: \"{path}\"")
    return path


def provide_bin_path(xml_path: str, bin_path: Optional[str] = None) -> str:
    """Returns `bin_path`, or `xml_path` with its extension swapped for .bin."""
    if bin_path:
        return str(bin_path)
    return xml_path[:-len(BIN_EXTENSION)] + BIN_EXTENSION


def _supported_version(version) -> Version:
    try:
        version = Version(version)
    except ValueError as e:
        raise UnsupportedVersionError(f"Unsupported IR version: {version}") from e
    if version not in _WRITERS:
        raise UnsupportedVersionError(f"Unsupported IR version: {version}")
    return version


class Serialize:
    """Writes a graph to disk as an IR: an .xml topology and a .bin weights file.

    Arguments are checked here, before any file is opened. A failing run may
    leave partially written files behind; removing them is up to the caller.
    The graph must not be modified by anyone else while `run_on_function` runs.
    """

    def __init__(self, xml_path, bin_path=None, version=Version.IR_V10,
                 custom_opsets: Optional[Mapping[str, OpSet]] = None):
        self.xml_path = valid_xml_path(str(xml_path))
        self.bin_path = provide_bin_path(self.xml_path, bin_path)
        self.version = _supported_version(version)
        self.custom_opsets = dict(custom_opsets or {})

    def run_on_function(self, graph: Graph) -> bool:
        """Serializes `graph`. Returns False: the graph itself is left unchanged."""
        write = _WRITERS[self.version]
        with open(self.bin_path, "wb") as bin_file:
            net = write(graph, bin_file, self.custom_opsets)
            tree = ET.ElementTree(net)
            ET.indent(tree, space="\t")
            with open(self.xml_path, "wb") as xml_file:
                tree.write(xml_file, encoding="utf-8", xml_declaration=True)
        logger.info(f"Serialized '{graph.friendly_name}' to {self.xml_path} and {self.bin_path}")
        return False


def serialize(graph: Graph, xml_path, bin_path=None, version=Version.IR_V10,
              custom_opsets: Optional[Mapping[str, OpSet]] = None) -> bool:
    return Serialize(xml_path, bin_path, version, custom_opsets).run_on_function(graph)
