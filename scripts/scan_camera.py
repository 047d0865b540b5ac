"""
Scan labels from a camera.

Opens an OpenCV video source, runs the capture orchestrator with a
console consumer and reads operator commands from the terminal.

Commands:
    c                 capture now
    y                 accept the suggested product and weight
    <kg>              accept the suggested product with this weight
    <product> <kg>    confirm explicitly
    r                 rescan
    p                 list products
    q                 quit
"""

import argparse
import asyncio
import json
import sys

from loguru import logger

from labelscan.capture.orchestrator import CaptureOrchestrator, ScanRecord, SessionMode
from labelscan.config import get_settings
from labelscan.identification.catalog import load_catalog
from labelscan.ocr.engine_manager import OCREngineManager
from labelscan.ocr.ocr_engine import build_backend
from labelscan.vision.video_source import OpenCVVideoSource


class ConsoleConsumer:
    """Prints orchestrator output and appends confirmed records to a file."""

    def __init__(self, output_path=None):
        self.output_path = output_path
        self.records = []

    def on_record(self, record: ScanRecord) -> None:
        self.records.append(record)
        print(f"✅ {record.product_name} ({record.product_id}) {record.kg} kg")
        if self.output_path:
            with open(self.output_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")

    def on_status(self, status: str) -> None:
        print(f"[{status}]")

    def on_error(self, message: str) -> None:
        print(f"❌ {message}")

    def on_progress(self, fraction: float) -> None:
        logger.debug(f"OCR progress {fraction:.0%}")


def print_pending(orchestrator: CaptureOrchestrator) -> None:
    pending = orchestrator.pending
    if pending is None:
        return
    product = orchestrator.catalog.get(pending.matched_product_id)
    print("-" * 40)
    print(f"Text:    {pending.raw_text.strip()!r}")
    print(f"Product: {product.name + ' (' + product.id + ')' if product else '-'} [{pending.match_method.value}]")
    print(f"Weight:  {pending.parsed_kg if pending.parsed_kg is not None else '-'}")
    print("y = accept, <kg> or <product> <kg> = confirm, r = rescan")


def handle_command(orchestrator: CaptureOrchestrator, line: str) -> None:
    parts = line.split()
    pending = orchestrator.pending

    if parts == ["p"]:
        for product in orchestrator.catalog:
            print(f"  {product.id:<10} {product.name}")
        return
    if parts == ["r"]:
        orchestrator.rescan()
        print("Rescanning")
        return
    if orchestrator.mode != SessionMode.CONFIRM or pending is None:
        print("Nothing to confirm; 'c' captures now")
        return

    if parts == ["y"]:
        kg = "" if pending.parsed_kg is None else str(pending.parsed_kg)
        orchestrator.confirm(pending.matched_product_id, kg)
    elif len(parts) == 1:
        orchestrator.confirm(pending.matched_product_id, parts[0])
    elif len(parts) == 2:
        orchestrator.confirm(parts[0], parts[1])
    else:
        print("Unknown command")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.backend:
        settings.ocr_backend = args.backend

    catalog = load_catalog(args.catalog or settings.catalog_path)
    languages = [l for l in settings.ocr_languages.split("+") if l]
    manager = OCREngineManager(build_backend(settings), languages=languages)
    source = OpenCVVideoSource(
        args.device if args.device is not None else settings.camera_device,
        resolution=(args.width, args.height),
        loop_file=args.loop,
    )
    consumer = ConsoleConsumer(output_path=args.output)
    orchestrator = CaptureOrchestrator(source, manager, catalog, consumer, settings=settings)

    if not await orchestrator.start():
        return 1

    loop = asyncio.get_running_loop()
    print("Hold a label in front of the camera. Enter shows the pending scan, 'c' captures now, 'q' quits.")
    try:
        while True:
            raw = await loop.run_in_executor(None, sys.stdin.readline)
            line = raw.strip()
            if not raw or line == "q":
                break
            if line == "c":
                await orchestrator.manual_capture()
            elif line:
                handle_command(orchestrator, line)
            if orchestrator.mode == SessionMode.CONFIRM:
                print_pending(orchestrator)
    finally:
        await orchestrator.stop()

    print(f"{len(consumer.records)} record(s) confirmed")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Scan product labels from a camera")
    parser.add_argument("--device", help="Camera index, device path or video file")
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    parser.add_argument("--loop", action="store_true", help="Loop a video file")
    parser.add_argument("--catalog", help="Catalog YAML/JSON file")
    parser.add_argument("--backend", choices=["tesseract", "vision"], help="OCR backend")
    parser.add_argument("--output", help="Append confirmed records as JSON lines")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
