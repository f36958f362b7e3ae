"""
Artifact registry.
Artifacts are generated files and documents, identified by their logical path.
Writing to a path that already exists produces the next version of the same artifact.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Optional, Union


class ArtifactType(Enum):
    PLAN = "plan"
    CODE = "code"
    MARKDOWN = "markdown"
    JSON = "json"
    IMAGE = "image"
    TEXT = "text"
    OTHER = "other"


MIME_TYPES = {
    "md": "text/markdown",
    "ts": "text/typescript",
    "tsx": "text/typescript",
    "js": "text/javascript",
    "jsx": "text/javascript",
    "py": "text/x-python",
    "json": "application/json",
    "html": "text/html",
    "css": "text/css",
    "txt": "text/plain",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
}

CODE_EXTENSIONS = {"ts", "tsx", "js", "jsx", "py", "java", "c", "cpp", "go", "rs"}
IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "svg", "webp"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _extension(filename: str) -> str:
    return PurePosixPath(filename).suffix.lstrip(".").lower()


def infer_mime_type(filename: str) -> str:
    return MIME_TYPES.get(_extension(filename), "application/octet-stream")


def infer_artifact_type(filename: str, path: str) -> ArtifactType:
    if path.startswith("plans/") or path.startswith("/plans/"):
        return ArtifactType.PLAN

    ext = _extension(filename)
    if ext in CODE_EXTENSIONS:
        return ArtifactType.CODE
    if ext == "md":
        return ArtifactType.MARKDOWN
    if ext == "json":
        return ArtifactType.JSON
    if ext in IMAGE_EXTENSIONS:
        return ArtifactType.IMAGE
    if ext == "txt":
        return ArtifactType.TEXT
    return ArtifactType.OTHER


@dataclass
class ArtifactMetadata:
    agent_id: Optional[str] = None
    agent_role: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    custom: dict[str, Any] = field(default_factory=dict)

    def merged_with(self, other: Optional["ArtifactMetadata"]) -> "ArtifactMetadata":
        """Fields set on ``other`` override ours; unset fields are inherited."""
        if other is None:
            return replace(self, custom=dict(self.custom))
        return ArtifactMetadata(
            agent_id=other.agent_id or self.agent_id,
            agent_role=other.agent_role or self.agent_role,
            created_at=other.created_at or self.created_at,
            updated_at=other.updated_at or self.updated_at,
            task_id=other.task_id or self.task_id,
            description=other.description or self.description,
            tags=other.tags if other.tags is not None else self.tags,
            custom={**self.custom, **other.custom},
        )


@dataclass
class ArtifactDraft:
    """Input to the registry: at least a filename and content."""

    filename: str
    content: str
    path: Optional[str] = None
    mime_type: Optional[str] = None
    type: Optional[ArtifactType] = None
    metadata: Optional[ArtifactMetadata] = None
    id: Optional[str] = None


@dataclass
class Artifact:
    id: str
    filename: str
    path: str
    content: str
    mime_type: str
    type: ArtifactType
    metadata: ArtifactMetadata
    version: int = 1

    def to_dict(self) -> dict[str, Any]:
        meta = self.metadata
        return {
            "id": self.id,
            "filename": self.filename,
            "path": self.path,
            "content": self.content,
            "mime_type": self.mime_type,
            "type": self.type.value,
            "version": self.version,
            "metadata": {
                "agent_id": meta.agent_id,
                "agent_role": meta.agent_role,
                "created_at": meta.created_at.isoformat() if meta.created_at else None,
                "updated_at": meta.updated_at.isoformat() if meta.updated_at else None,
                "task_id": meta.task_id,
                "description": meta.description,
                "tags": meta.tags,
                "custom": meta.custom,
            },
        }


class ArtifactRegistry:
    def __init__(self):
        self._artifacts: dict[str, Artifact] = {}
        self._ids_by_path: dict[str, str] = {}

    def add_or_update(self, artifact: Union[ArtifactDraft, Artifact]) -> Artifact:
        if not artifact.filename:
            raise ValueError("Artifact filename must not be empty")

        path = artifact.path or artifact.filename
        existing = self.get_by_path(path)
        now = _now()

        base_metadata = existing.metadata if existing else ArtifactMetadata()
        metadata = base_metadata.merged_with(artifact.metadata)
        metadata.created_at = existing.metadata.created_at if existing else (metadata.created_at or now)
        metadata.updated_at = now

        stored = Artifact(
            id=existing.id if existing else (artifact.id or uuid.uuid4().hex),
            filename=artifact.filename,
            path=path,
            content=artifact.content,
            mime_type=artifact.mime_type or infer_mime_type(artifact.filename),
            type=artifact.type or infer_artifact_type(artifact.filename, path),
            metadata=metadata,
            version=existing.version + 1 if existing else 1,
        )

        self._artifacts[stored.id] = stored
        self._ids_by_path[path] = stored.id
        return stored

    def restore(self, artifact: Artifact) -> Artifact:
        """Load a previously persisted artifact as-is, keeping its version."""
        previous_id = self._ids_by_path.get(artifact.path)
        if previous_id is not None and previous_id != artifact.id:
            self._artifacts.pop(previous_id, None)
        self._artifacts[artifact.id] = artifact
        self._ids_by_path[artifact.path] = artifact.id
        return artifact

    def get(self, artifact_id: str) -> Optional[Artifact]:
        return self._artifacts.get(artifact_id)

    def get_by_path(self, path: str) -> Optional[Artifact]:
        artifact_id = self._ids_by_path.get(path)
        return self._artifacts.get(artifact_id) if artifact_id else None

    def get_all(self) -> list[Artifact]:
        return list(self._artifacts.values())

    def get_by_type(self, artifact_type: ArtifactType) -> list[Artifact]:
        return [a for a in self._artifacts.values() if a.type == artifact_type]

    def get_plans(self) -> list[Artifact]:
        return [
            a for a in self._artifacts.values()
            if a.type == ArtifactType.PLAN or a.path.startswith("plans/")
        ]

    def get_by_agent(self, agent_id: str) -> list[Artifact]:
        return [a for a in self._artifacts.values() if a.metadata.agent_id == agent_id]

    def delete(self, artifact_id: str) -> bool:
        artifact = self._artifacts.pop(artifact_id, None)
        if artifact is None:
            return False
        self._ids_by_path.pop(artifact.path, None)
        return True

    def clear(self):
        self._artifacts.clear()
        self._ids_by_path.clear()

    def count(self) -> int:
        return len(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)


def create_plan_draft(
    filename: str,
    content: str,
    description: Optional[str] = None,
    agent_id: Optional[str] = None,
    agent_role: Optional[str] = None,
    task_id: Optional[str] = None,
) -> ArtifactDraft:
    date_prefix = _now().strftime("%Y-%m-%d")
    if not filename.endswith(".md"):
        filename = f"{filename}.md"

    return ArtifactDraft(
        filename=filename,
        path=f"plans/{date_prefix}-{filename}",
        content=content,
        type=ArtifactType.PLAN,
        mime_type="text/markdown",
        metadata=ArtifactMetadata(
            description=description,
            agent_id=agent_id,
            agent_role=agent_role,
            task_id=task_id,
            tags=["plan"],
        ),
    )


def create_code_draft(
    filename: str,
    content: str,
    path: Optional[str] = None,
    description: Optional[str] = None,
    agent_id: Optional[str] = None,
    agent_role: Optional[str] = None,
    task_id: Optional[str] = None,
) -> ArtifactDraft:
    return ArtifactDraft(
        filename=filename,
        path=path or filename,
        content=content,
        type=ArtifactType.CODE,
        metadata=ArtifactMetadata(
            description=description,
            agent_id=agent_id,
            agent_role=agent_role,
            task_id=task_id,
            tags=["code"],
        ),
    )
