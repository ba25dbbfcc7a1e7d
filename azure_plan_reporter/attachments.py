"""Upload of test artifacts to submitted case results."""

import asyncio
import base64
import logging
import uuid
from collections.abc import Sequence, Set

from azure_plan_reporter.client.base import TestManagementClient
from azure_plan_reporter.config import AttachmentType
from azure_plan_reporter.models.remote import AttachmentRequest
from azure_plan_reporter.models.result import Attachment, TestResult

log = logging.getLogger(__name__)


def attachment_file_name(attachment: Attachment) -> str:
    """Unique file name built from the artifact kind and its content type."""
    _, _, subtype = attachment.content_type.partition("/")
    return f"{attachment.name}-{uuid.uuid4()}.{subtype or 'bin'}"


class AttachmentUploader:
    """Uploads the selected artifacts of a result, one at a time.

    A failing artifact is logged and skipped; it never affects the other
    artifacts or the case result, which is already submitted.
    """

    def __init__(
        self,
        *,
        client: TestManagementClient,
        project: str,
        attachment_types: Set[AttachmentType],
    ) -> None:
        self.client = client
        self.project = project
        self.attachment_types = attachment_types

    def select(self, attachments: Sequence[Attachment]) -> Sequence[Attachment]:
        return [a for a in attachments if a.name in self.attachment_types]

    async def upload(
        self,
        result: TestResult,
        case_id: int,
        run_id: int,
        case_result_id: int,
    ) -> list[str]:
        """Upload attachments of ``result`` and return their URLs."""
        log.info("Start upload attachments for test case [%s]", case_id)
        urls: list[str] = []

        for attachment in self.select(result.attachments):
            try:
                urls.append(
                    await self._upload_one(attachment, run_id, case_result_id)
                )
            except Exception as exc:
                log.error(
                    "Failed to upload %s for test case [%s]: %s",
                    attachment.name,
                    case_id,
                    exc,
                )

        return urls

    async def _upload_one(
        self, attachment: Attachment, run_id: int, case_result_id: int
    ) -> str:
        if attachment.path is None or not attachment.path.exists():
            raise FileNotFoundError(f"Attachment {attachment.path} does not exist")

        content = await asyncio.to_thread(attachment.path.read_bytes)
        payload = AttachmentRequest(
            file_name=attachment_file_name(attachment),
            stream=base64.b64encode(content).decode("ascii"),
        )
        reference = await self.client.upload_attachment(
            payload, self.project, run_id, case_result_id
        )
        return reference.url
