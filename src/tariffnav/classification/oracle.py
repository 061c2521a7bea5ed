"""Classification oracle interface.

The oracle is an external service (typically a language model behind an HTTP
endpoint) consulted only when neither a legal override nor a material route
applies.  Its answer is trusted as a black box but validated against the
hierarchy before use: a chapter or heading that does not exist is a fatal
:class:`OracleValidationError` for the request.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Mapping, Optional, Protocol

import requests  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, ValidationError

from tariffnav.classification.models import ProductUnderstanding, Resolution
from tariffnav.errors import OracleUnavailableError, OracleValidationError
from tariffnav.hts.chapters import ChapterCatalog
from tariffnav.hts.codes import normalize_code
from tariffnav.hts.store import HierarchyStore
from tariffnav.observability import current_request_id, redact_secret

logger = logging.getLogger(__name__)

ORACLE = "oracle"


class OracleCode(BaseModel):
    code: str
    name: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class OracleRequest(BaseModel):
    description: str
    material: str
    use: str
    product_type: str
    chapters: List[Mapping[str, str]] = Field(default_factory=list)


class OracleResponse(BaseModel):
    chapter: OracleCode
    heading: OracleCode
    rationale: Optional[str] = None
    avoid_chapters: List[str] = Field(default_factory=list)


class ClassificationOracle(Protocol):
    """Anything that can propose a chapter and heading for a product."""

    def suggest(self, request: OracleRequest) -> OracleResponse: ...


def build_request(
    understanding: ProductUnderstanding,
    catalog: Optional[ChapterCatalog] = None,
) -> OracleRequest:
    chapters = []
    if catalog is not None:
        chapters = [{"code": entry.code, "name": entry.name} for entry in catalog.chapters()]
    return OracleRequest(
        description=understanding.description,
        material=understanding.material.value,
        use=understanding.use_context.value,
        product_type=understanding.product_type.value,
        chapters=chapters,
    )


class HttpClassificationOracle:
    """JSON-over-HTTP oracle client with a bounded timeout."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        if api_key:
            self._session.headers.setdefault("Authorization", f"Bearer {api_key}")
        logger.info("Oracle client for %s (key %s)", url, redact_secret(api_key))

    def suggest(self, request: OracleRequest) -> OracleResponse:
        headers = {}
        request_id = current_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        try:
            response = self._session.post(
                self.url,
                json=request.model_dump(),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as exc:
            logger.warning(
                "oracle.timeout",
                extra={"payload": {"request_id": request_id, "timeout_sec": self.timeout}},
            )
            raise OracleUnavailableError(f"Oracle timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            logger.warning(
                "oracle.unavailable",
                extra={"payload": {"request_id": request_id, "error": str(exc)}},
            )
            raise OracleUnavailableError(f"Oracle request failed: {exc}") from exc
        except ValueError as exc:
            logger.warning("oracle.malformed", extra={"payload": {"request_id": request_id}})
            raise OracleUnavailableError("Oracle returned a non-JSON body") from exc
        return parse_response(payload)


def parse_response(payload: object) -> OracleResponse:
    try:
        return OracleResponse.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "oracle.malformed",
            extra={"payload": {"request_id": current_request_id(), "errors": exc.error_count()}},
        )
        raise OracleUnavailableError("Oracle returned a malformed response") from exc


class StubOracle:
    """Deterministic oracle for tests and offline runs.

    ``answers`` maps a material or product type to a canned response; a
    callable ``default`` handles everything else.  Set ``error`` to make
    every call fail as if the service were down.
    """

    def __init__(
        self,
        answers: Optional[Mapping[str, OracleResponse]] = None,
        default: Optional[Callable[[OracleRequest], OracleResponse]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.answers = dict(answers or {})
        self.default = default
        self.error = error
        self.calls: List[OracleRequest] = []

    def suggest(self, request: OracleRequest) -> OracleResponse:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        for key in (request.product_type, request.material):
            if key in self.answers:
                return self.answers[key]
        if self.default is not None:
            return self.default(request)
        raise OracleUnavailableError(f"No stubbed answer for {request.product_type!r}")


def validate_suggestion(response: OracleResponse, store: HierarchyStore) -> None:
    """Raise :class:`OracleValidationError` unless both codes exist and nest."""

    chapter = normalize_code(response.chapter.code)
    heading = normalize_code(response.heading.code)
    detail = {"chapter": response.chapter.code, "heading": response.heading.code}
    if len(chapter) != 2 or store.get_node(chapter) is None:
        raise OracleValidationError(
            f"Oracle proposed chapter {response.chapter.code!r} which is not in the schedule",
            detail=detail,
        )
    if len(heading) != 4 or store.get_node(heading) is None:
        raise OracleValidationError(
            f"Oracle proposed heading {response.heading.code!r} which is not in the schedule",
            detail=detail,
        )
    if not heading.startswith(chapter):
        raise OracleValidationError(
            f"Oracle heading {response.heading.code!r} is not under chapter {response.chapter.code!r}",
            detail=detail,
        )


def to_resolution(response: OracleResponse) -> Resolution:
    return Resolution(
        source=ORACLE,
        rule="Oracle suggestion",
        chapter=normalize_code(response.chapter.code),
        heading=normalize_code(response.heading.code),
        reason=response.rationale or f"{response.chapter.name} / {response.heading.name}".strip(" /"),
        material_used=True,
        avoid_chapters=tuple(normalize_code(c) for c in response.avoid_chapters),
        chapter_confidence=response.chapter.confidence,
        heading_confidence=response.heading.confidence,
    )
