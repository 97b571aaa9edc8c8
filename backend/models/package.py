import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CODE_FENCE = "```"

_JS_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*", re.ASCII)


class Idea(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    number_of_functions: int = Field(default=5, ge=1)
    name_prefix: str = ""


class FunctionDescriptor(BaseModel):
    function_name: str
    function_summary: str


class PackageMeta(BaseModel):
    name: str
    description: str


class PackageSchema(BaseModel):
    name: str
    description: str
    functions: list[FunctionDescriptor] = []

    @property
    def meta(self) -> PackageMeta:
        return PackageMeta(name=self.name, description=self.description)


class GeneratedArtifact(BaseModel):
    kind: Literal["function", "test"]
    function_name: str
    content: str

    @property
    def has_code_fence(self) -> bool:
        return CODE_FENCE in self.content


class PublishState(str, Enum):
    PENDING = "pending"
    TEST_RUN = "test_run"
    REPO_CREATE = "repo_create"
    GIT_PUSH = "git_push"
    MOVE = "move"
    PUBLISH = "publish"
    DONE = "done"
    FAILED = "failed"
    ABANDONED = "abandoned"  # nothing to publish; never picked up again


def validate_packages(packages: Any) -> bool:
    """Check the raw JSON shape of a batch of package proposals.

    A single malformed package or function descriptor rejects the whole batch.
    """
    if not isinstance(packages, list):
        return False

    for npm_package in packages:
        if not isinstance(npm_package, dict):
            return False
        if not isinstance(npm_package.get("name"), str):
            return False
        if not isinstance(npm_package.get("description"), str):
            return False
        if not isinstance(npm_package.get("functions"), list):
            return False
        for func in npm_package["functions"]:
            if not isinstance(func, dict):
                return False
            if not isinstance(func.get("function_name"), str):
                return False
            if not isinstance(func.get("function_summary"), str):
                return False

    return True


def is_js_identifier(name: str) -> bool:
    """True when `name` can be used as a file stem and a JavaScript export name."""
    return bool(_JS_IDENTIFIER.fullmatch(name))
