"""Command-line interface for document normalization and classification.

Provides subcommands to normalize a photo, classify a text file, run the
full pipeline on an image and inspect or export the document catalog.
"""

import argparse
import json
import sys
from pathlib import Path

import cv2

from smartscan.classification.catalog import Catalog, load_catalog
from smartscan.classification.classifier import DocumentClassifier
from smartscan.extraction.rule_extractor import FieldExtractor
from smartscan.pipeline.orchestrator import DocumentPipeline, PipelineResult
from smartscan.preprocessing.images import RawImage
from smartscan.preprocessing.normalizer import ImageNormalizer
from smartscan.utils.config import AppConfig, load_config
from smartscan.utils.exceptions import SmartScanError
from smartscan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _catalog(config: AppConfig) -> Catalog:
    path = config.classification.catalog_path
    return load_catalog(Path(path) if path else None)


def normalize_image(image_path: Path, output_path: Path, config: AppConfig) -> dict[str, object]:
    """Normalize a photo and write the binarized scan.

    Args:
        image_path: Source photo.
        output_path: Destination image file (format from its suffix).
        config: Application configuration.

    Returns:
        Summary with output size and whether the perspective was corrected.
    """
    raw = RawImage.from_path(image_path)
    normalized = ImageNormalizer(config.normalizer).normalize(raw)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), normalized.pixels):
        raise SmartScanError("Could not write image", {"path": str(output_path)})

    return {
        "source": image_path.name,
        "output": str(output_path),
        "width": normalized.width,
        "height": normalized.height,
        "perspective_corrected": normalized.perspective_corrected,
        "fallback_reason": normalized.fallback_reason,
    }


def classify_text(text: str, config: AppConfig) -> dict[str, object]:
    """Classify text and extract the fields of its document type.

    Args:
        text: Recognised document text.
        config: Application configuration.

    Returns:
        Dictionary with category, specific type and extracted fields.
    """
    catalog = _catalog(config)
    result = DocumentClassifier(catalog).classify(text)
    fields = FieldExtractor(catalog).extract_fields(text, result.specific_type)
    return {
        "category": str(result.category),
        "specific_type": result.specific_type,
        "fields": fields,
    }


def _result_to_dict(result: PipelineResult) -> dict[str, object]:
    return {
        "state": str(result.state),
        "category": str(result.classification.category),
        "specific_type": result.classification.specific_type,
        "fields": result.fields,
        "record": result.record.model_dump() if result.record else None,
        "perspective_corrected": (
            result.normalized.perspective_corrected if result.normalized else None
        ),
        "timings_ms": {k: round(v, 1) for k, v in result.timings_ms.items()},
        "raw_text": result.text,
    }


def process_image(image_path: Path, config: AppConfig, structure: bool = True) -> dict[str, object]:
    """Run the full pipeline on an image file.

    Args:
        image_path: Source photo.
        config: Application configuration.
        structure: Whether to call the AI structuring provider.

    Returns:
        Dictionary describing the pipeline result.
    """
    pipeline = DocumentPipeline.from_config(config)
    result = pipeline.run_file(image_path, structure=structure)
    return {"filename": image_path.name, **_result_to_dict(result)}


def _emit(payload: dict[str, object] | str, output: Path | None) -> None:
    output_str = payload if isinstance(payload, str) else json.dumps(
        payload, indent=2, ensure_ascii=False
    )
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(output_str, encoding="utf-8")
        print(f"Output written to {output}")
    else:
        print(output_str)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="SmartScan document normalizer and classifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    normalize_parser = subparsers.add_parser("normalize", help="Flatten and binarize a photo")
    normalize_parser.add_argument("image", type=Path, help="Document photo")
    normalize_parser.add_argument(
        "-o", "--output", type=Path, required=True, help="Output image file"
    )

    classify_parser = subparsers.add_parser("classify", help="Classify a text file")
    classify_parser.add_argument("text_file", type=Path, help="UTF-8 text file")
    classify_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    process_parser = subparsers.add_parser("process", help="Run the full pipeline on a photo")
    process_parser.add_argument("image", type=Path, help="Document photo")
    process_parser.add_argument(
        "--no-ai", action="store_true", help="Skip AI structuring"
    )
    process_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    catalog_parser = subparsers.add_parser("catalog", help="Print the document type catalog")
    catalog_parser.add_argument("--export", type=Path, help="Write the catalog JSON here")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    try:
        if args.command == "normalize":
            _emit(normalize_image(args.image, args.output, config), None)
        elif args.command == "classify":
            if not args.text_file.exists():
                print(f"Error: {args.text_file} does not exist", file=sys.stderr)
                sys.exit(1)
            text = args.text_file.read_text(encoding="utf-8")
            _emit(classify_text(text, config), args.output)
        elif args.command == "process":
            if not args.image.exists():
                print(f"Error: {args.image} does not exist", file=sys.stderr)
                sys.exit(1)
            _emit(process_image(args.image, config, not args.no_ai), args.output)
        elif args.command == "catalog":
            _emit(_catalog(config).to_json(), args.export)
        else:
            parser.print_help()
            sys.exit(0)
    except SmartScanError as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
