# apps/api/main.py
import logging
from functools import partial

from apps.api.app_factory import create_app
from apps.common.settings import load_settings
from services.capture.intake import accept_upload
from services.ingestion.record_store import LocalRecordStore
from services.ocr_paddle.page_ocr import PageOCR
from services.verification.state_machine import VerificationService, VerifierConfig

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = load_settings()
records = LocalRecordStore(records_dir=str(settings.records_dir), uploads_dir=str(settings.uploads_dir))

service = VerificationService(
    ocr=PageOCR(lang=settings.ocr_lang),
    sink=records,
    image_store=records,
    config=VerifierConfig.from_settings(settings),
)

app = create_app(service=service, intake_fn=partial(accept_upload, gate=settings.quality_gate))
