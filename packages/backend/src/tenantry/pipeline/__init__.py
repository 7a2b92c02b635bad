"""Request context pipeline.

Learn: An explicit, ordered list of stages attaches the authenticated user,
then the workspace, then the app to each request. Stages declare what they
provide and what they need, so the ordering is checked when the pipeline
is built rather than implied by file names.
"""

from tenantry.pipeline.context import AppContext, RequestContext, WorkspaceContext
from tenantry.pipeline.stages import (
    AppStage,
    AuthStage,
    Pipeline,
    PipelineConfigError,
    Stage,
    WorkspaceStage,
    build_pipeline,
)

__all__ = [
    "AppContext",
    "AppStage",
    "AuthStage",
    "Pipeline",
    "PipelineConfigError",
    "RequestContext",
    "Stage",
    "WorkspaceContext",
    "WorkspaceStage",
    "build_pipeline",
]
