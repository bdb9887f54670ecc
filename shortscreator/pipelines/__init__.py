"""Pipeline orchestrators for the Shorts Creator composition engine."""

from shortscreator.pipelines.compose_short import ShortComposer, load_job, main

__all__ = ["ShortComposer", "load_job", "main"]
