import logging

from ..errors import EmptyDirectoryError, SubjectNotFoundError
from ..importers.subject_list import SubjectListImporter
from ..models.subjects import Subject, normalize_address

logger = logging.getLogger(__name__)


class SubjectResolver:
    """Builds the ordered list of subjects to scan.

    Precedence, first configured mode wins: explicit subject, imported
    subject list, full directory enumeration.
    """

    def __init__(self, directory, importer: SubjectListImporter | None = None):
        self.directory = directory
        self.importer = importer or SubjectListImporter()

    async def resolve(self, settings) -> list[Subject]:
        if settings.subject:
            subjects = [await self._resolve_single(settings.subject)]
        elif settings.subject_list_file:
            subjects = await self._resolve_list(settings.subject_list_file)
        else:
            subjects = await self._resolve_directory()
        return _dedupe_sorted(subjects)

    async def _resolve_single(self, raw_address: str) -> Subject:
        address = normalize_address(raw_address)
        subject = await self.directory.find_enabled(address)
        if subject is None:
            raise SubjectNotFoundError(
                "no enabled directory principal with this address", subject=address, phase="resolve",
            )
        logger.info("Scanning single subject %s (%s)", subject.address, subject.display_name)
        return subject

    async def _resolve_list(self, list_path: str) -> list[Subject]:
        subjects = []
        for raw_address in self.importer.read(list_path):
            address = normalize_address(raw_address)
            subject = await self.directory.find_enabled(address)
            if subject is None:
                self.importer.mark_skipped(address, "not found among enabled principals")
                continue
            self.importer.mark_resolved()
            subjects.append(subject)
        self.importer.finish()

        status = self.importer.status
        logger.info(
            "Imported %d of %d subjects from %s (%d skipped)",
            status["rows_resolved"], status["rows_total"], list_path, len(status["skipped"]),
        )
        if not subjects:
            raise EmptyDirectoryError(f"no subject in {list_path} resolved to an enabled principal", phase="resolve")
        return subjects

    async def _resolve_directory(self) -> list[Subject]:
        subjects = await self.directory.list_enabled()
        if not subjects:
            raise EmptyDirectoryError("directory returned no enabled principals", phase="resolve")
        logger.info("Enumerated %d enabled principals", len(subjects))
        return subjects


def _dedupe_sorted(subjects: list[Subject]) -> list[Subject]:
    unique: dict[str, Subject] = {}
    for subject in subjects:
        unique.setdefault(subject.sort_key, subject)
    return sorted(unique.values(), key=lambda s: s.sort_key)
