"""Pydantic models for remote API payloads."""

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class CertUpdate(BaseModel):
    """One page of the key-update stream.

    Built from the response headers (kid, next resume token) and the raw
    body (key material).
    """

    kid: str | None = None
    material: bytes
    next_resume_token: int | None = None


class CrlStatus(BaseModel):
    """Revocation list status for a given client version."""

    version: int
    from_version: int | None = Field(default=None, alias="fromVersion")
    chunk_size_bytes: int = Field(default=0, alias="sizeSingleChunkInByte")
    total_chunks: int = Field(default=0, alias="lastChunk", ge=0)
    add_count: int = Field(default=0, alias="numDiAdd")
    delete_count: int = Field(default=0, alias="numDiDelete")

    model_config = {"populate_by_name": True}


class RevocationDelta(BaseModel):
    """Insertions and deletions relative to the previous version."""

    insertions: list[str] = Field(default_factory=list)
    deletions: list[str] = Field(default_factory=list)

    @field_validator("insertions", "deletions", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class RevocationChunk(BaseModel):
    """One chunk of the revocation list.

    Exactly one of ``revoked_ids`` (full snapshot fragment) or ``delta``
    (delta fragment) is populated.
    """

    version: int | None = None
    chunk: int | None = None
    revoked_ids: list[str] | None = Field(default=None, alias="revokedUcvi")
    delta: RevocationDelta | None = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_single_fragment(self) -> "RevocationChunk":
        if (self.revoked_ids is None) == (self.delta is None):
            raise ValueError("chunk must carry exactly one of revokedUcvi or delta")
        return self

    @property
    def is_delta(self) -> bool:
        return self.delta is not None

    @property
    def insertions(self) -> list[str]:
        if self.delta is not None:
            return self.delta.insertions
        return self.revoked_ids or []

    @property
    def deletions(self) -> list[str]:
        if self.delta is not None:
            return self.delta.deletions
        return []
