from __future__ import annotations
from collections import Counter
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

from ..serialize.attributes import EXEC_TIME_KEY
from . import viz


def _parse_exec_time(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        # e.g. "not_executed"
        return None


def _layer_rows(net: ET.Element) -> List[Dict[str, Any]]:
    rows = []
    layers = net.find("layers")
    for layer in ([] if layers is None else layers.findall("layer")):
        data = layer.find("data")
        row = {
            "id": int(layer.get("id")),
            "name": layer.get("name", ""),
            "type": layer.get("type", ""),
            "version": layer.get("version"),
            "exec_time_mcs": _parse_exec_time(data.get(EXEC_TIME_KEY)) if data is not None else None,
            "weights_bytes": 0,
        }
        if row["type"] == "Const" and data is not None and data.get("size") is not None:
            row["weights_bytes"] = int(data.get("size"))
        rows.append(row)
    return rows


def generate_report_json(xml_path: str, bin_path: Optional[str] = None) -> Dict[str, Any]:
    """Summarizes a serialized IR as a JSON-compatible dictionary."""
    net = ET.parse(xml_path).getroot()
    layers = _layer_rows(net)
    edges = net.find("edges")
    num_edges = 0 if edges is None else len(edges.findall("edge"))

    report = {
        "name": net.get("name", ""),
        "ir_version": net.get("version"),
        "num_layers": len(layers),
        "num_edges": num_edges,
        "layer_types": dict(sorted(Counter(l["type"] for l in layers).items())),
        "opsets": dict(sorted(Counter(l["version"] for l in layers if l["version"]).items())),
        "weights_bytes": sum(l["weights_bytes"] for l in layers),
        "layers": layers,
    }
    exec_times = [l["exec_time_mcs"] for l in layers if l["exec_time_mcs"] is not None]
    if exec_times:
        report["total_exec_time_mcs"] = sum(exec_times)
    if bin_path is not None:
        report["bin_size"] = Path(bin_path).stat().st_size
    return report


def generate_report(xml_path: str, report_dir: str, bin_path: Optional[str] = None,
                    ascii_table: bool = False) -> Dict[str, Any]:
    """Generates all report artifacts."""
    report_data = generate_report_json(xml_path, bin_path)
    output_dir = Path(report_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with open(output_dir / "report.json", "w") as f:
        json.dump(report_data, f, indent=4)

    viz.export_layer_chart(report_data['layers'], str(output_dir / "report.html"))

    if ascii_table:
        print(viz.export_layer_table_ascii(report_data['layers']))

    print(f"\nReports generated in {output_dir.absolute()}")
    print(f"Network: {report_data['name']} (IR v{report_data['ir_version']})")
    print(f"Layers: {report_data['num_layers']}, Edges: {report_data['num_edges']}")
    if report_data['layer_types']:
        print("\nLayer Types:")
        for key, value in report_data['layer_types'].items():
            print(f"  {key:<20}: {value}")
    if report_data['opsets']:
        print("\nOp-sets:")
        for key, value in report_data['opsets'].items():
            print(f"  {key:<20}: {value}")
    print(f"\nWeights: {report_data['weights_bytes']} bytes")
    if report_data.get('bin_size') is not None:
        print(f"Bin file: {report_data['bin_size']} bytes")
    if report_data.get('total_exec_time_mcs') is not None:
        print(f"Total Exec Time: {report_data['total_exec_time_mcs']:.2f} us")
    return report_data
