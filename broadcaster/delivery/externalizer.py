"""
Embedded-image externalizer.

Rewrites ``<img src="data:image/...;base64,...">`` payloads in rendered
HTML to hosted URLs. Identical payloads are uploaded once per pass; a
failed upload leaves that image's data URI in place and the rest of the
document is still processed.
"""
import asyncio
import base64
import binascii
import hashlib
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..logging_config import delivery_logger
from .blob_store import BlobStore

IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
DATA_URI_SRC = re.compile(
    r"""(?P<prefix>\bsrc\s*=\s*)(?P<quote>["'])"""
    r"""(?P<uri>data:(?P<mime>image/[a-zA-Z0-9.+-]+);base64,(?P<data>[A-Za-z0-9+/=\s]*))"""
    r"""(?P=quote)""",
    re.IGNORECASE,
)


@dataclass
class ImageReplacement:
    original_reference: str
    new_url: str


@dataclass
class ImageFailure:
    original_reference: str
    reason: str


@dataclass
class ExternalizeResult:
    html: str
    replacements: List[ImageReplacement] = field(default_factory=list)
    failures: List[ImageFailure] = field(default_factory=list)
    uploads: int = 0


@dataclass
class _Payload:
    mime: str
    data: bytes
    url: Optional[str] = None
    error: Optional[str] = None


def count_inline_images(html: str) -> int:
    return sum(1 for tag in IMG_TAG.finditer(html) if DATA_URI_SRC.search(tag.group(0)))


class ImageExternalizer:
    def __init__(self, blob_store: BlobStore, upload_timeout: float = 15.0):
        self.blob_store = blob_store
        self.upload_timeout = upload_timeout

    async def externalize(self, html: str, owner_id) -> ExternalizeResult:
        if not html or "data:" not in html:
            return ExternalizeResult(html=html or "")

        # Pass 1: collect distinct payloads keyed by content digest.
        payloads: Dict[str, _Payload] = {}
        undecodable: Dict[str, str] = {}
        for tag in IMG_TAG.finditer(html):
            match = DATA_URI_SRC.search(tag.group(0))
            if not match:
                continue
            uri = match.group("uri")
            try:
                raw = base64.b64decode("".join(match.group("data").split()), validate=True)
            except (binascii.Error, ValueError):
                undecodable[uri] = "Invalid base64 payload"
                continue
            key = hashlib.sha256(raw).hexdigest()
            payloads.setdefault(key, _Payload(mime=match.group("mime").lower(), data=raw))

        # Pass 2: upload each distinct payload once, failures isolated.
        keys = list(payloads)
        outcomes = await asyncio.gather(
            *(self._upload(owner_id, payloads[k]) for k in keys),
            return_exceptions=True,
        )
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                payloads[key].error = _describe(outcome)
                delivery_logger.warning(
                    "Image upload failed, keeping inline payload",
                    owner_id=owner_id,
                    digest=key[:12],
                    reason=payloads[key].error,
                )
            else:
                payloads[key].url = outcome

        # Pass 3: rewrite every occurrence.
        result = ExternalizeResult(html=html, uploads=sum(1 for p in payloads.values() if p.url))

        def rewrite_src(match: "re.Match") -> str:
            uri = match.group("uri")
            if uri in undecodable:
                result.failures.append(ImageFailure(original_reference=uri, reason=undecodable[uri]))
                return match.group(0)
            raw = base64.b64decode("".join(match.group("data").split()))
            payload = payloads[hashlib.sha256(raw).hexdigest()]
            if payload.url is None:
                result.failures.append(ImageFailure(original_reference=uri, reason=payload.error or "Upload failed"))
                return match.group(0)
            result.replacements.append(ImageReplacement(original_reference=uri, new_url=payload.url))
            quote = match.group("quote")
            return f"{match.group('prefix')}{quote}{payload.url}{quote}"

        def rewrite_tag(tag: "re.Match") -> str:
            return DATA_URI_SRC.sub(rewrite_src, tag.group(0), count=1)

        result.html = IMG_TAG.sub(rewrite_tag, html)

        delivery_logger.info(
            "Externalized inline images",
            owner_id=owner_id,
            occurrences=len(result.replacements) + len(result.failures),
            uploads=result.uploads,
            failures=len(result.failures),
        )
        return result

    async def _upload(self, owner_id, payload: _Payload) -> str:
        return await asyncio.wait_for(
            self.blob_store.upload(owner_id, payload.data, payload.mime),
            timeout=self.upload_timeout,
        )


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "Upload timed out"
    return str(error) or type(error).__name__
