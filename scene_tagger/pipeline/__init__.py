"""Scene description → image prompt pipeline.

Input text is resolved, matched against the character registry, turned into
English Danbooru-style tags (directly, or via the tag-generation model) and
composed with the selected characters' appearance tags:

    weight::scene tags::, [Name1: appearance1], [Name2: appearance2]

Korean text never reaches the composed prompt: the sanitizer drops scene tags
that still contain it, and the composer re-checks every fragment.
"""

from .orchestrator import (  # noqa: F401
    generate_scene_tags,
    looks_like_tag_list,
    pipeline_options,
    run_pipeline,
)
