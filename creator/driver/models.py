"""
Model families supported by the aider driver.

Each family decides which secret variable the child sees, where the
secret comes from, and which extra flags aider needs. Adding a family is
a new row in MODEL_FAMILIES.
"""

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase


class CredentialSource(Enum):
    """Where the secret for a model family comes from."""

    API_KEY = "api_key"  # supplied by the caller
    MANAGED = "managed"  # access token from the credential provider


@dataclass(frozen=True)
class ModelFamily:
    """One row of the model family table."""

    name: str
    patterns: tuple[str, ...]
    env_var: str
    credential_source: CredentialSource
    # Pass --model <name> to aider
    model_flag: bool = False
    # Route aider through the managed OpenAI-compatible proxy
    use_managed_api_base: bool = False

    def matches(self, model: str) -> bool:
        return any(fnmatchcase(model, pattern) for pattern in self.patterns)

    def aider_args(self, model: str, managed_api_base: str) -> list[str]:
        """Extra aider flags for this family."""
        args: list[str] = []
        if self.model_flag:
            args.extend(["--model", model])
        if self.use_managed_api_base:
            args.extend(["--openai-api-base", managed_api_base])
        return args


# Order matters: the first matching family wins and the last row catches all
MODEL_FAMILIES: tuple[ModelFamily, ...] = (
    ModelFamily(
        name="anthropic",
        patterns=("*claude*",),
        env_var="ANTHROPIC_API_KEY",
        credential_source=CredentialSource.API_KEY,
        model_flag=True,
    ),
    ModelFamily(
        name="openai",
        patterns=("gpt-4o",),
        env_var="OPENAI_API_KEY",
        credential_source=CredentialSource.API_KEY,
        model_flag=True,
    ),
    ModelFamily(
        name="managed",
        patterns=("*",),
        env_var="OPENAI_API_KEY",
        credential_source=CredentialSource.MANAGED,
        use_managed_api_base=True,
    ),
)

SUPPORTED_MODELS: tuple[str, ...] = ("claude-3-5-sonnet-20240620", "pearai_model", "gpt-4o")

# Every variable any family may inject; stripped from the inherited env
SECRET_ENV_VARS: frozenset[str] = frozenset(f.env_var for f in MODEL_FAMILIES)


def family_for(model: str) -> ModelFamily:
    """Return the family handling ``model``."""
    for family in MODEL_FAMILIES:
        if family.matches(model):
            return family
    return MODEL_FAMILIES[-1]
