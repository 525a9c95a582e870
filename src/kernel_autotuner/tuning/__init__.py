"""Kernel auto-tuning: parameter spaces, search strategies and the pipeline."""

from .configuration import (
    KernelDefinition,
    ParameterDefinition,
    ReferenceDefinition,
    TuningConfig,
    default_tuning_config,
    load_tuning_config,
)
from .constraints import (
    ArithmeticOperator,
    Constraint,
    ConstraintEngine,
    RelationOperator,
)
from .errors import (
    CompileError,
    DuplicateParameterError,
    EmptyDomainError,
    InvalidConfigurationError,
    InvalidDomainValueError,
    InvalidConstraintError,
    KernelRuntimeError,
    LaunchError,
    ReferenceKernelError,
    SessionAbortedError,
    SpaceDefinitionError,
    SpaceExhaustedError,
    TuningError,
    UnknownParameterError,
)
from .generator import ConfigurationGenerator
from .leaderboard import Leaderboard
from .logging import CSVResultLogger, ResultLogger, write_leaderboard_csv
from .pipeline import TuningPipeline
from .runtime import (
    ArgumentKind,
    KernelArgument,
    KernelRuntime,
    KernelSpec,
    LaunchGeometry,
    LaunchOutcome,
    RecordedTiming,
    ReferenceKernel,
    ReplayKernelRuntime,
    SizeAction,
    SizeTarget,
    ThreadSizeModifier,
    render_defines,
)
from .schemas import (
    ExecutionResult,
    ExecutionStatus,
    LeaderboardEntry,
    StopReason,
    StrategyKind,
    TuningReport,
    TuningRunConfig,
)
from .space import Configuration, Parameter, ParameterSpace
from .strategies import (
    FullSearch,
    Particle,
    ParticleSwarm,
    RandomSearch,
    SearchStrategy,
    SimulatedAnnealing,
)

__all__ = [
    "ArgumentKind",
    "ArithmeticOperator",
    "CSVResultLogger",
    "CompileError",
    "Configuration",
    "ConfigurationGenerator",
    "Constraint",
    "ConstraintEngine",
    "DuplicateParameterError",
    "EmptyDomainError",
    "ExecutionResult",
    "ExecutionStatus",
    "FullSearch",
    "InvalidConfigurationError",
    "InvalidDomainValueError",
    "InvalidConstraintError",
    "KernelArgument",
    "KernelDefinition",
    "KernelRuntime",
    "KernelRuntimeError",
    "KernelSpec",
    "LaunchError",
    "LaunchGeometry",
    "LaunchOutcome",
    "Leaderboard",
    "LeaderboardEntry",
    "Parameter",
    "ParameterDefinition",
    "ParameterSpace",
    "Particle",
    "ParticleSwarm",
    "RandomSearch",
    "RecordedTiming",
    "ReferenceDefinition",
    "ReferenceKernel",
    "ReferenceKernelError",
    "RelationOperator",
    "ReplayKernelRuntime",
    "ResultLogger",
    "SearchStrategy",
    "SessionAbortedError",
    "SimulatedAnnealing",
    "SizeAction",
    "SizeTarget",
    "SpaceDefinitionError",
    "SpaceExhaustedError",
    "StopReason",
    "StrategyKind",
    "ThreadSizeModifier",
    "TuningConfig",
    "TuningError",
    "TuningPipeline",
    "TuningReport",
    "TuningRunConfig",
    "UnknownParameterError",
    "default_tuning_config",
    "load_tuning_config",
    "render_defines",
    "write_leaderboard_csv",
]
