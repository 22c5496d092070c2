"""
Correspondence form templates and response validation.

Provides the built-in survey presets staff can start a form from, and the
required-answer check applied before a submission is accepted.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from gatong_pass.errors import UnknownPresetError
from gatong_pass.models import FormItem, FormItemType


@dataclass(frozen=True)
class SurveyPreset:
    """A reusable set of form questions."""

    id: str
    name: str
    description: str
    items: list[dict[str, Any]] = field(default_factory=list)


ALLERGY_OPTIONS = [
    "난류(달걀)", "우유", "메밀", "땅콩", "대두", "밀", "고등어", "게", "새우",
    "돼지고기", "복숭아", "토마토", "아황산염", "호두", "닭고기", "쇠고기",
    "오징어", "조개류(굴, 전복, 홍합 포함)", "잣",
]

SURVEY_PRESETS: list[SurveyPreset] = [
    SurveyPreset(
        id="participation",
        name="참가 신청형",
        description="체험학습, 캠프 등 참가 여부와 사유를 조사합니다.",
        items=[
            {"type": "radio", "label": "참가 여부", "options": ["참가", "불참"], "required": True},
            {"type": "text", "label": "불참 사유 (불참 시 작성)", "required": False},
        ],
    ),
    SurveyPreset(
        id="health_allergy",
        name="건강/알레르기 조사",
        description="급식 및 안전을 위한 보건 실태를 조사합니다.",
        items=[
            {"type": "radio", "label": "식품 알레르기 유무", "options": ["있음", "없음"], "required": True},
            {
                "type": "checkbox",
                "label": "해당되는 알레르기 유발 식품 (있는 경우)",
                "options": ALLERGY_OPTIONS,
                "required": False,
            },
            {"type": "text", "label": "기타 특이사항 및 건강상태", "required": False},
        ],
    ),
    SurveyPreset(
        id="emergency_contact",
        name="비상 연락망",
        description="응급상황 대비 보호자 연락처를 수집합니다.",
        items=[
            {"type": "text", "label": "보호자 성함", "required": True},
            {"type": "text", "label": "학생과의 관계 (예: 부, 모, 조부 등)", "required": True},
            {"type": "text", "label": "비상 연락처", "required": True},
        ],
    ),
    SurveyPreset(
        id="school_trip",
        name="수학여행/희망지 조사",
        description="희망하는 목적지나 활동 코스를 조사합니다.",
        items=[
            {"type": "radio", "label": "수학여행 참가 여부", "options": ["참가", "불참"], "required": True},
            {
                "type": "radio",
                "label": "희망 지역",
                "options": ["제주도", "에버랜드/수도권", "강원도", "기타"],
                "required": True,
            },
            {"type": "text", "label": "불참 사유 및 기타 의견", "required": False},
        ],
    ),
    SurveyPreset(
        id="privacy_consent",
        name="개인정보 활용 동의",
        description="조사 및 통계 활용을 위한 법적 동의를 받습니다.",
        items=[
            {
                "type": "checkbox",
                "label": "개인정보 수집 및 이용에 동의하십니까?",
                "options": ["동의함", "동의하지 않음"],
                "required": True,
            },
        ],
    ),
]


def get_preset(preset_id: str) -> SurveyPreset:
    """Look up a preset by id.

    Raises:
        UnknownPresetError: If no preset has this id.
    """
    for preset in SURVEY_PRESETS:
        if preset.id == preset_id:
            return preset
    raise UnknownPresetError(f"Unknown survey preset: {preset_id}", preset_id=preset_id)


def build_form(preset_id: str, with_signature: bool = False) -> list[FormItem]:
    """
    Instantiate a preset as form items with fresh ids.

    Args:
        preset_id: Preset to copy
        with_signature: Append a required guardian signature item
    """
    items = [
        FormItem(
            id=str(uuid.uuid4()),
            type=FormItemType(item["type"]),
            label=item["label"],
            options=list(item.get("options", [])),
            required=item.get("required", False),
        )
        for item in get_preset(preset_id).items
    ]
    if with_signature:
        items.append(
            FormItem(
                id=str(uuid.uuid4()),
                type=FormItemType.SIGNATURE,
                label="보호자 서명",
                required=True,
            )
        )
    return items


def _is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set)):
        return any(_is_answered(v) for v in value)
    return bool(str(value).strip())


def label_answers(form_items: Sequence[FormItem], answers: Mapping[str, Any]) -> dict[str, Any]:
    """Re-key answers by item label; keys that are not item ids are kept."""
    labels = {item.id: item.label for item in form_items}
    return {labels.get(key, key): value for key, value in answers.items()}


def missing_required(form_items: Sequence[FormItem], answers: Mapping[str, Any]) -> list[str]:
    """
    Labels of required items with no answer.

    Answers may be keyed by item id or by item label.
    """
    missing = []
    for item in form_items:
        if not item.required:
            continue
        value = answers.get(item.id, answers.get(item.label))
        if not _is_answered(value):
            missing.append(item.label)
    return missing
