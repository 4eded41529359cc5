# tools/verify_text.py
"""
Offline CNIC check: scores OCR text and shows what would be extracted.

  python -m tools.verify_text --text samples/card.txt
  python -m tools.verify_text --image card.jpg
  python -m tools.verify_text --camera 0
"""
import argparse
import asyncio
import sys
from dataclasses import asdict
from pathlib import Path

from rich.console import Console
from rich.table import Table

from apps.common.settings import load_settings
from services.authenticity.scorer import AuthenticityScorer
from services.extraction.fields import extract_fields
from services.verification.errors import AuthenticityRejected, VerificationError
from services.verification.models import CaptureSource
from services.verification.state_machine import VerificationService, VerifierConfig

console = Console()


def _read_text(args, settings, ocr=None) -> str:
    if args.text:
        return Path(args.text).read_text(encoding="utf-8")

    # Only pull in PaddleOCR when an image actually has to be read.
    from services.capture.camera import capture_from_camera
    from services.capture.intake import accept_upload
    from services.ingestion.record_store import LocalRecordStore

    if args.camera is not None:
        blob, source = capture_from_camera(args.camera), CaptureSource.CAMERA
    else:
        blob, source = Path(args.image).read_bytes(), CaptureSource.UPLOAD
    accept_upload(blob, settings.quality_gate)

    if ocr is None:
        from services.ocr_paddle.page_ocr import PageOCR

        ocr = PageOCR(lang=settings.ocr_lang)

    records = LocalRecordStore(records_dir=str(settings.records_dir), uploads_dir=str(settings.uploads_dir))
    service = VerificationService(
        ocr=ocr,
        sink=records,
        image_store=records,
        config=VerifierConfig.from_settings(settings),
    )
    try:
        session_id = asyncio.run(service.start_session(blob, source=source))
    except AuthenticityRejected as e:
        # still show the indicator table for the rejected photo
        session_id = e.session_id
    session = service.sessions.get(session_id)
    console.print(
        f"[dim]{source} capture, session {session.id}, "
        f"OCR confidence: {session.ocr.confidence:.1f}%[/dim]"
    )
    return session.ocr.text


def render(text: str, min_score: int) -> bool:
    assessment = AuthenticityScorer(min_score=min_score).assess(text)

    table = Table(title="CNIC indicators")
    table.add_column("Indicator")
    table.add_column("Present", justify="center")
    for name, ok in assessment.indicators.items():
        table.add_row(name, "[green]yes[/green]" if ok else "[red]no[/red]")
    console.print(table)

    colour = "green" if assessment.is_valid else "red"
    console.print(
        f"[bold {colour}]{assessment.decision.upper()}[/bold {colour}] "
        f"score {assessment.score}/{len(assessment.indicators)} ({assessment.confidence:.1f}%)"
    )
    for reason in assessment.reasons:
        console.print(f"  [yellow]- {reason}[/yellow]")

    fields = Table(title="Extracted fields")
    fields.add_column("Field")
    fields.add_column("Value")
    for k, v in asdict(extract_fields(text)).items():
        fields.add_row(k, v if v is not None else "[dim]-[/dim]")
    console.print(fields)
    return assessment.is_valid


def main(argv=None, *, ocr=None) -> int:
    ap = argparse.ArgumentParser(description="Score a CNIC photo or its OCR text.")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", help="UTF-8 file with OCR text")
    src.add_argument("--image", help="card photo to run through PaddleOCR")
    src.add_argument("--camera", type=int, help="capture one frame from this camera index")
    ap.add_argument("--config", default=None, help="path to verifier.yaml")
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    try:
        text = _read_text(args, settings, ocr)
    except VerificationError as e:
        console.print(f"[red]{e.message}[/red]")
        return 2
    return 0 if render(text, settings.auth_min_score) else 1


if __name__ == "__main__":
    sys.exit(main())
