"""Core data structures for readscope."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .scopes import ScopeNode


class NodeKind(Enum):
    """Kind tag of a syntax node, as exposed by the parser adapter."""
    METHOD = "method"
    CLASS = "class"
    FOR = "for"
    WHILE = "while"
    DO_WHILE = "do_while"
    IF = "if"
    SWITCH = "switch"
    TRY = "try"
    CATCH = "catch"
    FOR_EACH = "foreach"
    FILE = "file"
    CODE_BLOCK = "code_block"
    DOC_COMMENT = "doc_comment"
    OTHER = "other"


class ScopeKind(Enum):
    METHOD = "method"
    CLASS = "class"
    FOR = "for"
    WHILE = "while"
    DO_WHILE = "do_while"
    IF = "if"
    SWITCH = "switch"
    TRY = "try"
    CATCH = "catch"
    FOR_EACH = "foreach"
    FILE = "file"
    METHOD_BODY = "method_body"


# Node kinds that open a scope on their own, without looking at the parent.
SCOPE_NODE_KINDS: dict[NodeKind, ScopeKind] = {
    NodeKind.METHOD: ScopeKind.METHOD,
    NodeKind.CLASS: ScopeKind.CLASS,
    NodeKind.FOR: ScopeKind.FOR,
    NodeKind.WHILE: ScopeKind.WHILE,
    NodeKind.DO_WHILE: ScopeKind.DO_WHILE,
    NodeKind.IF: ScopeKind.IF,
    NodeKind.SWITCH: ScopeKind.SWITCH,
    NodeKind.TRY: ScopeKind.TRY,
    NodeKind.CATCH: ScopeKind.CATCH,
    NodeKind.FOR_EACH: ScopeKind.FOR_EACH,
    NodeKind.FILE: ScopeKind.FILE,
}


@dataclass(frozen=True, eq=False)
class SyntaxNode:
    """One node of the parse tree handed over by the parser adapter."""
    kind: NodeKind
    text: str
    start_offset: int               # character offset, inclusive
    end_offset: int                 # character offset, exclusive
    children: tuple["SyntaxNode", ...] = ()
    name: str | None = None         # declared identifier (Method / Class only)
    type_name: str = ""             # raw grammar node type, e.g. "if_statement"


@dataclass(frozen=True)
class ScoreResult:
    score: float                                # 0.0 (unreadable) – 1.0 (readable)
    metrics: Mapping[str, float] | None = None
    analyzed_file: str = ""                     # path reported by the engine

    def __post_init__(self) -> None:
        if self.metrics is not None and not isinstance(self.metrics, MappingProxyType):
            object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    @property
    def has_metrics(self) -> bool:
        return self.metrics is not None

    def metric(self, name: str) -> float | None:
        if self.metrics is None:
            return None
        return self.metrics.get(name)

    def with_metrics(self, metrics: Mapping[str, float]) -> "ScoreResult":
        return ScoreResult(score=self.score, metrics=metrics, analyzed_file=self.analyzed_file)


# Score bands for colouring a rated scope.
LOW_THRESHOLD = 0.33
HIGH_THRESHOLD = 0.66


@dataclass(eq=False)
class RatedScope:
    """A method scope paired with its score for one rating pass."""
    scope: "ScopeNode"
    result: ScoreResult

    def start_line(self, zero_indexed: bool = True) -> int:
        return self.scope.start_line if zero_indexed else self.scope.start_line + 1

    def end_line(self, zero_indexed: bool = True) -> int:
        return self.scope.end_line if zero_indexed else self.scope.end_line + 1

    @property
    def score(self) -> float:
        return self.result.score

    @property
    def band(self) -> str:
        if self.result.score < LOW_THRESHOLD:
            return "low"
        if self.result.score > HIGH_THRESHOLD:
            return "high"
        return "medium"

    @property
    def method_name(self) -> str:
        return self.scope.syntax.name or self.scope.name.removeprefix("method ")

    @property
    def file_path(self) -> str:
        return self.scope.file_path

    @property
    def code(self) -> str:
        return self.scope.code

    def has_doc_comment(self) -> bool:
        return self.scope.has_doc_comment()



@dataclass(frozen=True)
class Improvement:
    metric: str
    actual_value: float | None      # None when the scope never reported the metric
    improved_value: float           # mean of well-readable code
    actual_score: float
    improved_score: float
    rank: int

    @property
    def score_gain(self) -> float:
        return self.improved_score - self.actual_score


@dataclass
class RatingConfig:
    engine_dir: str                 # directory holding RSE.jar
    java: str = "java"
    jar: str = "RSE.jar"
    metrics_class: str = "it.unimol.readability.metric.runnable.ExtractMetrics"
    temp_dir: str | None = None     # snippet directory; a fresh temp dir when None
    timeout: float = 120.0          # seconds per engine invocation
    max_workers: int | None = None  # defaults to os.cpu_count()
    exclude_dirs: list[str] = field(default_factory=lambda: [
        ".git", ".idea", ".gradle", "target", "build", "out", "node_modules",
    ])
