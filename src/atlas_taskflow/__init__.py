"""
Atlas TaskFlow - orquestração de tasks parametrizadas com cache por identidade.

Uso típico:

    from atlas_taskflow import task, int_param, InMemoryArtifactStore, driver

    @task(params=(int_param("seed", 0),))
    def prepare(ctx):
        ctx.save(list(range(ctx["seed"], ctx["seed"] + 3)))

    result = driver.run(prepare(seed=1), store=InMemoryArtifactStore())
"""

from atlas_taskflow._version import __version__
from atlas_taskflow.core.engine import (
    Engine,
    PreviewReport,
    RunResult,
    TaskGraph,
    build_graph,
    invalidate,
    preview,
)
from atlas_taskflow.core.exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    NotFoundError,
    StoreIOError,
    TaskExecutionError,
    TaskflowException,
    TypeMismatchError,
)
from atlas_taskflow.core.task import (
    CacheStatus,
    Inherit,
    NodeResult,
    NodeStatus,
    Parameter,
    ParamKind,
    RunContext,
    TaskContext,
    TaskDef,
    TaskIdentity,
    TaskInstance,
    TaskKind,
    bool_param,
    choice_param,
    float_param,
    int_param,
    str_param,
    task,
)
from atlas_taskflow.persistence import (
    ArtifactMeta,
    ArtifactStore,
    FileSystemArtifactStore,
    InMemoryArtifactStore,
)
from atlas_taskflow import driver

__all__ = [
    "__version__",
    "Engine",
    "PreviewReport",
    "RunResult",
    "TaskGraph",
    "build_graph",
    "invalidate",
    "preview",
    "ConfigurationError",
    "CyclicDependencyError",
    "NotFoundError",
    "StoreIOError",
    "TaskExecutionError",
    "TaskflowException",
    "TypeMismatchError",
    "CacheStatus",
    "Inherit",
    "NodeResult",
    "NodeStatus",
    "Parameter",
    "ParamKind",
    "RunContext",
    "TaskContext",
    "TaskDef",
    "TaskIdentity",
    "TaskInstance",
    "TaskKind",
    "bool_param",
    "choice_param",
    "float_param",
    "int_param",
    "str_param",
    "task",
    "ArtifactMeta",
    "ArtifactStore",
    "FileSystemArtifactStore",
    "InMemoryArtifactStore",
    "driver",
]
