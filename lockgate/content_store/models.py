"""Data models for the content store client."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ContentIdentifier:
    """Both canonical encodings of one content fingerprint."""

    v0: str
    v1: str

    def to_dict(self) -> dict[str, str]:
        return {"contentIdentifierV0": self.v0, "contentIdentifierV1": self.v1}
