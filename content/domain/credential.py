import hashlib
from dataclasses import dataclass, field


def credential_identifier(api_key: str) -> str:
    """리포트/로그에 키 원문이 노출되지 않도록 해시 기반 식별자를 만든다."""
    digest = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:8]
    return f"key-{digest}"


@dataclass
class Credential:
    identifier: str
    api_key: str = field(repr=False)
    quota_limit: int = 10000
    quota_used: int = 0
    quota_reserved: int = 0
    error_count: int = 0
    exhausted: bool = False
    low_priority: bool = False
    revoked: bool = False

    @classmethod
    def from_api_key(cls, api_key: str, quota_limit: int = 10000) -> "Credential":
        return cls(identifier=credential_identifier(api_key), api_key=api_key, quota_limit=quota_limit)

    @property
    def quota_remaining(self) -> int:
        return self.quota_limit - self.quota_used - self.quota_reserved

    def can_afford(self, cost: int) -> bool:
        return not self.exhausted and self.quota_remaining >= cost

    def usage_ratio(self) -> float:
        if self.quota_limit <= 0:
            return 1.0
        return self.quota_used / self.quota_limit

    def to_status(self) -> dict:
        return {
            "usage": self.quota_used,
            "reserved": self.quota_reserved,
            "limit": self.quota_limit,
            "errors": self.error_count,
            "available": not self.exhausted,
            "low_priority": self.low_priority,
            "revoked": self.revoked,
            "percentage": round(self.usage_ratio() * 100, 1),
        }
