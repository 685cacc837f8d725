"""
Model capability metadata.

One ModelSpec per known (provider, model) pair. Routing and tool selection
read these flags instead of pattern-matching model names.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Tuple

# Gemini built-in (server-side) tools
TOOL_GOOGLE_SEARCH = "google_search"
TOOL_CODE_EXECUTION = "code_execution"
TOOL_GOOGLE_MAPS = "google_maps"

# Function tools served by tools.registry
TOOL_WEB_SEARCH = "web_search"
TOOL_VISION = "vision"
TOOL_URL_CONTEXT = "url_context"
TOOL_FILE_TOOLS = "file_tools"
TOOL_BROWSER = "browser"

CAP_MULTIMODAL = "multimodal"
CAP_REASONING = "reasoning"


@dataclass(frozen=True)
class ModelSpec:
    """A model route (provider, model) plus what the model can do."""

    provider: str
    model: str
    multimodal: bool = False
    reasoning: bool = False
    tools: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def route(self) -> Tuple[str, str]:
        return (self.provider, self.model)

    def has(self, capability: str) -> bool:
        if capability == CAP_MULTIMODAL:
            return self.multimodal
        if capability == CAP_REASONING:
            return self.reasoning
        return capability in self.tools


_GEMINI_BASE_TOOLS = frozenset({TOOL_GOOGLE_SEARCH, TOOL_CODE_EXECUTION})
_GEMINI_MAPS_TOOLS = _GEMINI_BASE_TOOLS | {TOOL_GOOGLE_MAPS}

MODEL_CAPABILITIES: Dict[Tuple[str, str], ModelSpec] = {
    spec.route: spec
    for spec in [
        ModelSpec("gemini", "gemini-3-flash-preview", multimodal=True, reasoning=True, tools=_GEMINI_MAPS_TOOLS),
        ModelSpec("gemini", "gemini-2.5-pro", multimodal=True, reasoning=True, tools=_GEMINI_MAPS_TOOLS),
        ModelSpec("gemini", "gemini-2.5-flash", multimodal=True, tools=_GEMINI_BASE_TOOLS),
        ModelSpec("gemini", "gemini-2.5-flash-lite", multimodal=True, tools=_GEMINI_BASE_TOOLS),
        ModelSpec(
            "cloudflare",
            "@cf/openai/gpt-oss-120b",
            reasoning=True,
            tools=frozenset({TOOL_WEB_SEARCH, TOOL_CODE_EXECUTION, TOOL_URL_CONTEXT, TOOL_BROWSER}),
        ),
        ModelSpec(
            "cloudflare",
            "@cf/meta/llama-4-scout-17b-16e-instruct",
            multimodal=True,
            tools=frozenset({TOOL_WEB_SEARCH, TOOL_VISION, TOOL_FILE_TOOLS, TOOL_URL_CONTEXT}),
        ),
    ]
}

# Provider-wide defaults for models configured via env but missing above
_PROVIDER_DEFAULTS = {
    "gemini": {"multimodal": True, "tools": _GEMINI_BASE_TOOLS},
    "cloudflare": {},
}


def spec_for(provider: str, model: str) -> ModelSpec:
    spec = MODEL_CAPABILITIES.get((provider, model))
    if spec is not None:
        return spec
    return ModelSpec(provider, model, **_PROVIDER_DEFAULTS.get(provider, {}))


def specs_for(provider: str, models: Iterable[str]) -> List[ModelSpec]:
    return [spec_for(provider, m) for m in models]
