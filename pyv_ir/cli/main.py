from __future__ import annotations
import argparse
import os
from ..ir.onnx_importer import load_onnx_as_model_ir
from ..serialize.serializer import Version, serialize, valid_xml_path
from ..config import SerializeConfig
from ..utils.logging import get_logger
from ..utils.reporting import generate_report


def cmd_serialize(args):
    """Handles the 'serialize' command."""
    config = SerializeConfig.from_args(args)
    logger = get_logger(level=config.log_level)

    if not config.model:
        raise SystemExit("error: no model given on the command line or in the config file")

    valid_xml_path(config.output)
    logger.info(f"Serializing model: {config.model} -> {config.output}")
    graph = load_onnx_as_model_ir(config.model)

    bin_path = config.resolved_bin_path()
    for path in (config.output, bin_path):
        out_dir = os.path.dirname(path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)

    serialize(graph, config.output, bin_path, config.ir_version, config.build_custom_opsets())
    print(f"[OK] Serialized to {config.output} and {bin_path}")

    if config.report_dir:
        generate_report(config.output, config.report_dir, bin_path)


def cmd_report(args):
    """Handles the 'report' command."""
    get_logger(level=args.log_level or "INFO")
    report_dir = args.report_dir or os.path.join(os.path.dirname(args.ir) or ".", "report")
    generate_report(args.ir, report_dir, args.bin_path, ascii_table=args.ascii)


def build_parser():
    p = argparse.ArgumentParser(
        prog="pyv-ir",
        description="PyV-IR: serialize dataflow graphs to IR v10 (.xml + .bin)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- Serialize Command ---
    ps = sub.add_parser("serialize", help="Convert ONNX -> IR (.xml + .bin)",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ps.add_argument("-c", "--config", type=str, default=None,
                    help="Path to YAML config file to override defaults")
    ps.add_argument("model", nargs='?', default=None,
                    help="Path to ONNX model (optional if specified in config)")
    ps.add_argument("-o", "--output", type=str, default=None,
                    help="Output path for the IR .xml file")
    ps.add_argument("--bin", type=str, default=None, dest="bin_path",
                    help="Output path for the IR .bin file (derived from --output if omitted)")
    ps.add_argument("--ir-version", type=int, default=None, dest="ir_version",
                    choices=[v.value for v in Version], help="IR version to write")
    ps.add_argument("--report", type=str, default=None, dest="report_dir",
                    help="Directory to save an IR report")
    ps.add_argument("--log-level", type=str, default=None, dest="log_level",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    ps.set_defaults(func=cmd_serialize)

    # --- Report Command ---
    pr = sub.add_parser("report", help="Summarize an existing IR",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    pr.add_argument("ir", help="Path to the IR .xml file")
    pr.add_argument("--bin", type=str, default=None, dest="bin_path",
                    help="Path to the IR .bin file, to report its size")
    pr.add_argument("--report", type=str, default=None, dest="report_dir",
                    help="Directory to save report.json and report.html")
    pr.add_argument("--ascii", action="store_true",
                    help="Print an ASCII layer table to the console")
    pr.add_argument("--log-level", type=str, default=None, dest="log_level",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    pr.set_defaults(func=cmd_report)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    main()
