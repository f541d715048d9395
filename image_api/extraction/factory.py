from image_api.config.settings import Settings
from image_api.extraction.base import BaseExtractor
from image_api.extraction.c2pa_extractor import C2paExtractor
from image_api.extraction.exif_extractor import ExifExtractor
from image_api.extraction.iptc_extractor import IptcExtractor


class ExtractorFactory:
    """Creates the three metadata extractors with the configured time budget."""

    ADAPTERS: tuple[type[BaseExtractor], ...] = (ExifExtractor, IptcExtractor, C2paExtractor)

    @classmethod
    def create(cls, settings: Settings) -> list[BaseExtractor]:
        return [
            adapter_cls(timeout_seconds=settings.extractor_timeout_seconds)
            for adapter_cls in cls.ADAPTERS
        ]
