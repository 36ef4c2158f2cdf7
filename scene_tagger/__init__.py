"""Scene descriptions to tag-based image prompts."""

from scene_tagger.composer import compose  # noqa: F401
from scene_tagger.language import contains_disallowed_language  # noqa: F401
from scene_tagger.llm import (  # noqa: F401
    GenerationAdapter,
    GenerationError,
    GenerationFailed,
    GenerationUnavailable,
    HttpGenerator,
)
from scene_tagger.models import Character, MatchedCharacter, PipelineResult, RouteSettings  # noqa: F401
from scene_tagger.pipeline import run_pipeline  # noqa: F401
from scene_tagger.sanitizer import sanitize  # noqa: F401
