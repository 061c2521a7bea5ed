from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tariffnav.api.security import require_api_key
from tariffnav.classification.duty import resolve_duty
from tariffnav.classification.engine import ClassificationEngine
from tariffnav.classification.hierarchy import build_hierarchy
from tariffnav.classification.models import ClassificationResult, DutyInfo, Hierarchy
from tariffnav.hts.codes import normalize_code

router = APIRouter(
    prefix="/api",
    tags=["classification"],
    dependencies=[Depends(require_api_key)],
)


class ClassifyRequest(BaseModel):
    """Product description plus optional hints and answers to earlier questions."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    description: str = Field(min_length=1, max_length=2000)
    material: Optional[str] = None
    use: Optional[str] = None
    product_type: Optional[str] = None
    construction: Optional[str] = None
    gender: Optional[str] = None
    answers: Dict[str, str] = Field(default_factory=dict)

    def hints(self) -> Dict[str, str]:
        fields = ("material", "use", "product_type", "construction", "gender")
        return {name: getattr(self, name) for name in fields if getattr(self, name)}


class HtsCodeResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str
    code_formatted: str
    level: str
    description: str
    general_rate: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    hierarchy: Hierarchy
    duty: DutyInfo


def get_engine(request: Request) -> ClassificationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail={"message": "Classification engine is not ready"})
    return engine


@router.post("/classify", response_model=ClassificationResult)
def classify_product(
    request: ClassifyRequest,
    engine: ClassificationEngine = Depends(get_engine),
) -> ClassificationResult:
    """Classify a product, or return the questions needed to do so."""

    return engine.classify(request.description, hints=request.hints(), answers=request.answers)


@router.get("/hts/{code}", response_model=HtsCodeResponse)
def lookup_code(code: str, engine: ClassificationEngine = Depends(get_engine)) -> HtsCodeResponse:
    """Look up a code with its hierarchy and effective general duty."""

    node = engine.store.get_node(normalize_code(code))
    if node is None:
        raise HTTPException(status_code=404, detail={"message": f"Unknown HTS code {code}"})
    return HtsCodeResponse(
        code=node.code,
        code_formatted=node.formatted,
        level=node.level,
        description=node.description,
        general_rate=node.general_rate or None,
        children=[child.code for child in engine.store.get_children(node.code)],
        hierarchy=build_hierarchy(engine.store, node.code),
        duty=resolve_duty(engine.store, node.code).to_model(),
    )
