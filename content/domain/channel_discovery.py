import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote

CHANNEL_ID_PATTERN = re.compile(r"^UC[0-9A-Za-z_-]{22}$")
URL_HANDLE_PATTERN = re.compile(r"youtube\.com/(@[^/?#\s]+)")
URL_CHANNEL_PATTERN = re.compile(r"youtube\.com/channel/(UC[0-9A-Za-z_-]{22})")


@dataclass(frozen=True)
class ChannelReference:
    """
    사람이 적어 둔 채널 표기(@handle, 채널 URL, 채널 ID)를 정규화한 값.
    channel_id 가 있으면 API 호출 없이 바로 쓸 수 있다.
    """
    raw: str
    handle: Optional[str] = None
    channel_id: Optional[str] = None


def parse_channel_reference(text: str) -> Optional[ChannelReference]:
    raw = (text or "").strip()
    if not raw:
        return None
    decoded = unquote(raw)

    match = URL_CHANNEL_PATTERN.search(decoded)
    if match:
        return ChannelReference(raw=raw, channel_id=match.group(1))
    if CHANNEL_ID_PATTERN.match(decoded):
        return ChannelReference(raw=raw, channel_id=decoded)

    match = URL_HANDLE_PATTERN.search(decoded)
    if match:
        return ChannelReference(raw=raw, handle=match.group(1))
    if "/" in decoded:
        return None
    handle = decoded if decoded.startswith("@") else f"@{decoded}"
    return ChannelReference(raw=raw, handle=handle)


def looks_political(title: str, description: Optional[str], keywords) -> bool:
    text = f"{title or ''} {description or ''}".lower()
    return any(keyword.lower() in text for keyword in keywords)


@dataclass
class DiscoveryReport:
    resolved: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)
    discovered: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    quota_used: int = 0

    def to_dict(self) -> dict:
        return {
            "resolved": dict(self.resolved),
            "unresolved": list(self.unresolved),
            "discovered": list(self.discovered),
            "rejected": len(self.rejected),
            "added": list(self.added),
            "warnings": list(self.warnings),
            "quota_used": self.quota_used,
        }
