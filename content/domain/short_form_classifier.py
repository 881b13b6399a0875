import logging
import re
from dataclasses import dataclass, field

from content.domain.exceptions import ClassificationInputError

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(
    r"P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?"
)


@dataclass(frozen=True)
class ShortFormRules:
    max_short_seconds: int = 60
    marker_max_seconds: int = 90
    portrait_ratio: float = 0.6
    markers: tuple[str, ...] = field(default=("shorts", "#shorts", "숏츠", "쇼츠"))


@dataclass(frozen=True)
class Classification:
    is_short: bool
    duration_seconds: int


def parse_duration(value, strict: bool = False) -> int:
    """
    ISO-8601 duration(PT1H2M3S, PT45S, P1DT2H 등)을 초 단위 정수로 변환한다.
    정수나 숫자 문자열은 초로 간주한다. 해석할 수 없으면 0을 돌려주고,
    strict=True 인 경우에만 ClassificationInputError 를 던진다.
    """
    if value is None or isinstance(value, bool):
        return _reject(value, strict)
    if isinstance(value, (int, float)):
        return max(0, int(value))

    text = str(value).strip().upper()
    if text.isdigit():
        return int(text)
    match = _DURATION_PATTERN.fullmatch(text)
    if not match:
        return _reject(value, strict)

    parts = {name: int(num or 0) for name, num in match.groupdict().items()}
    return parts["days"] * 86400 + parts["hours"] * 3600 + parts["minutes"] * 60 + parts["seconds"]


def _reject(value, strict: bool) -> int:
    if strict:
        raise ClassificationInputError(f"Unparseable duration: {value!r}")
    logger.debug("unparseable duration %r, defaulting to 0", value)
    return 0


def has_short_marker(title: str | None, description: str | None, markers: tuple[str, ...]) -> bool:
    text = f"{title or ''}\n{description or ''}".lower()
    return any(marker.lower() in text for marker in markers)


def aspect_ratio(width, height) -> float | None:
    try:
        width_value = float(width)
        height_value = float(height)
    except (TypeError, ValueError):
        return None
    if width_value <= 0 or height_value <= 0:
        return None
    return width_value / height_value


def classify(
    duration,
    title: str | None = None,
    description: str | None = None,
    thumbnail_width=None,
    thumbnail_height=None,
    rules: ShortFormRules | None = None,
) -> Classification:
    # 규칙은 순서대로 적용되며 먼저 맞는 규칙이 이긴다.
    rules = rules or ShortFormRules()
    seconds = parse_duration(duration)
    if seconds <= 0:
        return Classification(is_short=False, duration_seconds=0)

    if seconds <= rules.max_short_seconds:
        return Classification(is_short=True, duration_seconds=seconds)

    if seconds <= rules.marker_max_seconds and has_short_marker(title, description, rules.markers):
        return Classification(is_short=True, duration_seconds=seconds)

    ratio = aspect_ratio(thumbnail_width, thumbnail_height)
    if ratio is not None and ratio < rules.portrait_ratio and seconds <= rules.marker_max_seconds:
        return Classification(is_short=True, duration_seconds=seconds)

    return Classification(is_short=False, duration_seconds=seconds)


def classify_video(video, rules: ShortFormRules | None = None) -> Classification:
    return classify(
        video.duration_seconds,
        title=video.title,
        description=video.description,
        thumbnail_width=video.thumbnail_width,
        thumbnail_height=video.thumbnail_height,
        rules=rules,
    )
