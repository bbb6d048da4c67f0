# src/atlas_taskflow/core/engine/graph.py
"""
Dependency Graph Builder do Atlas TaskFlow.

Este módulo expande uma instância terminal de task no DAG completo de
nós, resolvendo parâmetros (defaults, configuração e herança) e
produzindo uma ordem topológica determinística.

Algoritmo:
    1. Resolver os parâmetros do nó corrente:
         explícito em `requires()` > propagação herdada >
         defaults de configuração (`tasks.<nome>`) > default declarado
    2. Chamar `requires(instância resolvida)` e validar o formato retornado
    3. Expandir recursivamente cada dependência (DFS), propagando valores
       de parâmetros herdados (`Inherit`) para baixo no grafo
    4. Deduplicar nós por Task Identity (nó compartilhado)
    5. Ordenar via Kahn determinístico (empates por `identity.key`)

Propagação herdada:
    - Um valor é propagado quando o nó o recebeu explicitamente, por
      propagação ou por configuração (nunca quando é apenas o default)
    - A chave de propagação é `(task de origem, parâmetro)`; recebem o valor
      a própria task de origem e toda task que herde o mesmo parâmetro
      da mesma origem
    - Nós intermediários que não declaram o parâmetro apenas repassam o valor

Invariantes:
    - A construção é pura: nunca toca o Artifact Store
    - Um back-edge para um nó em expansão ⇒ CyclicDependencyError
    - Duas definições distintas com o mesmo nome ⇒ ConfigurationError
    - Uma mesma identidade sempre possui as mesmas dependências no grafo

Limites explícitos:
    - Não executa tasks
    - Não decide cache nem políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from atlas_taskflow.core.exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    TaskflowException,
)
from atlas_taskflow.core.task.registry import TaskRegistry
from atlas_taskflow.core.task.task import TaskDef, TaskIdentity, TaskInstance


_PropagationKey = Tuple[str, str]
TaskRef = Union[TaskIdentity, TaskInstance, TaskDef, str]


@dataclass(frozen=True)
class Edge:
    """Aresta dependente → dependência, anotada com os parâmetros herdados."""

    dependent: TaskIdentity
    dependency: TaskIdentity
    inherited: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskNode:
    """
    Nó transitório do grafo.

    Campos:
        - instance: instância com parâmetros totalmente resolvidos
        - dependencies: identidades das dependências (ordem de `requires()`,
          sem repetição)
        - template: formato retornado por `requires()` com identidades no
          lugar das instâncias (None, identidade, lista, tupla ou dict)
        - inherited: parâmetros cujo valor veio de propagação herdada
        - configured: parâmetros cujo valor veio da configuração
    """

    instance: TaskInstance
    dependencies: Tuple[TaskIdentity, ...] = ()
    template: Any = None
    inherited: Tuple[str, ...] = ()
    configured: Tuple[str, ...] = ()

    @property
    def identity(self) -> TaskIdentity:
        return self.instance.identity

    @property
    def key(self) -> str:
        return self.instance.key

    @property
    def name(self) -> str:
        return self.instance.name

    @property
    def definition(self) -> TaskDef:
        return self.instance.definition


@dataclass(frozen=True)
class TaskGraph:
    """DAG transitório enraizado na identidade terminal."""

    root: TaskIdentity
    nodes: Mapping[TaskIdentity, TaskNode]
    edges: Tuple[Edge, ...]
    order: Tuple[TaskIdentity, ...]
    _dependents: Mapping[TaskIdentity, Tuple[TaskIdentity, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        dependents: Dict[TaskIdentity, List[TaskIdentity]] = {i: [] for i in self.nodes}
        for edge in self.edges:
            dependents[edge.dependency].append(edge.dependent)
        object.__setattr__(
            self,
            "_dependents",
            {i: tuple(sorted(d, key=lambda x: x.key)) for i, d in dependents.items()},
        )

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[TaskNode]:
        return (self.nodes[i] for i in self.order)

    def __contains__(self, identity: object) -> bool:
        return identity in self.nodes

    @property
    def root_node(self) -> TaskNode:
        return self.nodes[self.root]

    def node(self, identity: TaskIdentity) -> TaskNode:
        try:
            return self.nodes[identity]
        except KeyError:
            raise ConfigurationError(
                f"Task {identity} is not part of this graph",
                details={"identity": getattr(identity, "key", str(identity))},
            ) from None

    def dependencies(self, identity: TaskIdentity) -> Tuple[TaskIdentity, ...]:
        return self.node(identity).dependencies

    def dependents(self, identity: TaskIdentity) -> Tuple[TaskIdentity, ...]:
        self.node(identity)
        return self._dependents[identity]

    def downstream(self, identities: Iterable[TaskIdentity]) -> Set[TaskIdentity]:
        """Todos os dependentes transitivos das identidades informadas."""
        found: Set[TaskIdentity] = set()
        pending = list(identities)
        while pending:
            current = pending.pop()
            for dependent in self.dependents(current):
                if dependent not in found:
                    found.add(dependent)
                    pending.append(dependent)
        return found

    def upstream(self, identity: TaskIdentity) -> Set[TaskIdentity]:
        """Todas as dependências transitivas de uma identidade."""
        found: Set[TaskIdentity] = set()
        pending = [identity]
        while pending:
            current = pending.pop()
            for dependency in self.dependencies(current):
                if dependency not in found:
                    found.add(dependency)
                    pending.append(dependency)
        return found

    def resolve(self, ref: TaskRef) -> List[TaskIdentity]:
        """
        Resolve uma referência para identidades do grafo.

        Aceita `TaskIdentity`, `TaskInstance` (match exato de identidade),
        `TaskDef` (todos os nós da definição) ou `str` (chave de identidade
        ou nome de task).
        """
        if isinstance(ref, TaskInstance):
            ref = ref.identity
        if isinstance(ref, TaskIdentity):
            return [self.node(ref).identity]

        if isinstance(ref, TaskDef):
            matches = [i for i in self.order if self.nodes[i].definition is ref]
        elif isinstance(ref, str):
            matches = [i for i in self.order if i.key == ref] or [
                i for i in self.order if i.name == ref
            ]
        else:
            raise ConfigurationError(
                f"Cannot resolve task reference of type {type(ref).__name__}",
                details={"reference": repr(ref)},
            )

        if not matches:
            raise ConfigurationError(
                f"No task matching {ref!r} in graph rooted at {self.root}",
                details={"reference": str(ref), "identity": self.root.key},
                hint="Use o nome da task ou a chave exibida pelo preview.",
            )
        return matches


# ---------------------------------------------------------------------------
# Construção
# ---------------------------------------------------------------------------

def _normalize_requires(result: Any, owner: TaskInstance) -> Tuple[Any, List[TaskInstance]]:
    """Valida o retorno de `requires()` e devolve (formato, instâncias)."""
    if result is None:
        return None, []
    if isinstance(result, TaskInstance):
        return result, [result]

    if isinstance(result, (list, tuple)):
        items = list(result)
    elif isinstance(result, dict):
        items = list(result.values())
    else:
        items = None

    if items is None or not all(isinstance(item, TaskInstance) for item in items):
        hint = "Retorne None, uma instância de task ou uma lista/tupla/dict de instâncias."
        if isinstance(result, TaskDef) or (items and any(isinstance(i, TaskDef) for i in items)):
            hint = "Instancie a dependência chamando a definição, ex.: prepare()."
        raise ConfigurationError(
            f"requires() of {owner.identity} returned an unsupported value: {result!r}",
            details={"identity": owner.key, "task": owner.name, "received": type(result).__name__},
            hint=hint,
        )
    return result, items


def _freeze(context: Mapping[_PropagationKey, Any]) -> Tuple[Tuple[_PropagationKey, Any], ...]:
    return tuple(sorted(context.items()))


class _GraphBuilder:
    def __init__(self, task_defaults: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self.task_defaults = dict(task_defaults or {})
        self.registry = TaskRegistry()
        self.nodes: Dict[TaskIdentity, TaskNode] = {}
        self.edges: Dict[Tuple[TaskIdentity, TaskIdentity], Edge] = {}
        self._stack: List[TaskIdentity] = []
        self._seen: Set[Tuple[TaskIdentity, Tuple[Any, ...]]] = set()

    # ------------------------------------------------------------------
    # Resolução de parâmetros
    # ------------------------------------------------------------------
    def _resolve(
        self,
        instance: TaskInstance,
        context: Mapping[_PropagationKey, Any],
    ) -> Tuple[TaskInstance, Tuple[str, ...], Tuple[str, ...]]:
        definition = instance.definition
        declared = definition.declared_params

        configured_values = self.task_defaults.get(definition.name) or {}
        unknown = sorted(set(configured_values) - set(declared))
        if unknown:
            raise ConfigurationError(
                f"Configuration for task '{definition.name}' sets undeclared parameter(s): "
                f"{', '.join(unknown)}",
                details={"task": definition.name, "unknown": unknown, "declared": sorted(declared)},
                hint=f"Revise a seção tasks.{definition.name} da configuração.",
            )

        values: Dict[str, Any] = {}
        propagated: List[str] = []
        configured: List[str] = []
        for pname, param in declared.items():
            key = (definition.origin_of(pname) or definition.name, pname)
            if pname in instance.explicit:
                values[pname] = instance.values[pname]
            elif key in context:
                values[pname] = param.validate(context[key], owner=definition.name)
                propagated.append(pname)
            elif pname in configured_values:
                values[pname] = param.validate(configured_values[pname], owner=definition.name)
                configured.append(pname)
            else:
                values[pname] = param.default

        resolved = instance._rebind(values, instance.explicit)
        return resolved, tuple(propagated), tuple(configured)

    def _child_context(
        self,
        instance: TaskInstance,
        context: Mapping[_PropagationKey, Any],
        set_names: Set[str],
    ) -> Dict[_PropagationKey, Any]:
        child = dict(context)
        for pname, origin in instance.definition.inherited.items():
            if pname in set_names:
                child[(origin, pname)] = instance.values[pname]
        return child

    def _requires(self, instance: TaskInstance) -> Tuple[Any, List[TaskInstance]]:
        fn = instance.definition.requires
        if fn is None:
            return None, []
        try:
            result = fn(instance)
        except TaskflowException:
            raise
        except Exception as exc:
            raise ConfigurationError(
                f"requires() of {instance.identity} raised {type(exc).__name__}: {exc}",
                details={"identity": instance.key, "task": instance.name},
                hint="requires() deve ser uma função pura sobre os parâmetros da instância.",
            ) from exc
        return _normalize_requires(result, instance)

    # ------------------------------------------------------------------
    # DFS
    # ------------------------------------------------------------------
    def visit(
        self,
        instance: TaskInstance,
        context: Mapping[_PropagationKey, Any],
    ) -> Tuple[TaskIdentity, Tuple[str, ...]]:
        self.registry.add(instance.definition)
        resolved, propagated, configured = self._resolve(instance, context)
        identity = resolved.identity

        if identity in self._stack:
            start = self._stack.index(identity)
            cycle = [str(i) for i in self._stack[start:]] + [str(identity)]
            raise CyclicDependencyError(
                f"Cyclic dependency: {' -> '.join(cycle)}",
                details={"identity": identity.key, "cycle": cycle},
                hint="Remova a dependência circular entre as tasks indicadas.",
            )

        marker = (identity, _freeze(context))
        if marker in self._seen:
            return identity, propagated
        self._seen.add(marker)

        set_names = set(resolved.explicit) | set(propagated) | set(configured)
        child_context = self._child_context(resolved, context, set_names)

        self._stack.append(identity)
        try:
            shape, dependencies = self._requires(resolved)
            resolved_deps: List[TaskIdentity] = []
            for dep in dependencies:
                dep_identity, dep_inherited = self.visit(dep, child_context)
                resolved_deps.append(dep_identity)
                edge_key = (identity, dep_identity)
                if edge_key not in self.edges:
                    self.edges[edge_key] = Edge(
                        dependent=identity,
                        dependency=dep_identity,
                        inherited=dep_inherited,
                    )
        finally:
            self._stack.pop()

        unique_deps = tuple(dict.fromkeys(resolved_deps))
        existing = self.nodes.get(identity)
        if existing is not None:
            if existing.dependencies != unique_deps:
                raise ConfigurationError(
                    f"Task {identity} resolves to different dependencies depending on the path "
                    f"that reaches it",
                    details={
                        "identity": identity.key,
                        "dependencies": [str(d) for d in existing.dependencies],
                        "conflicting": [str(d) for d in unique_deps],
                    },
                    hint="Declare Inherit para o parâmetro propagado nesta task, ou passe o valor explicitamente em requires().",
                )
        else:
            self.nodes[identity] = TaskNode(
                instance=resolved,
                dependencies=unique_deps,
                template=_substitute(shape, iter(resolved_deps)),
                inherited=propagated,
                configured=configured,
            )
        return identity, propagated


def _substitute(shape: Any, identities: Iterator[TaskIdentity]) -> Any:
    """Troca cada instância do formato de `requires()` pela identidade resolvida."""
    if shape is None:
        return None
    if isinstance(shape, TaskInstance):
        return next(identities)
    if isinstance(shape, dict):
        return {k: next(identities) for k in shape}
    if isinstance(shape, tuple):
        return tuple(next(identities) for _ in shape)
    return [next(identities) for _ in shape]


def topological_order(
    nodes: Mapping[TaskIdentity, TaskNode],
) -> Tuple[TaskIdentity, ...]:
    """
    Ordem topológica determinística (Kahn; empates por `identity.key`).

    Raises:
        CyclicDependencyError: se sobrar algum nó sem ordem.
    """
    incoming: Dict[TaskIdentity, int] = {i: len(n.dependencies) for i, n in nodes.items()}
    outgoing: Dict[TaskIdentity, Set[TaskIdentity]] = {i: set() for i in nodes}
    for identity, node in nodes.items():
        for dep in node.dependencies:
            outgoing[dep].add(identity)

    def _by_key(identity: TaskIdentity) -> str:
        return identity.key

    ready: List[TaskIdentity] = sorted((i for i, c in incoming.items() if c == 0), key=_by_key)
    order: List[TaskIdentity] = []
    while ready:
        current = ready.pop(0)
        order.append(current)
        for child in sorted(outgoing[current], key=_by_key):
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort(key=_by_key)

    if len(order) != len(nodes):
        remaining = sorted((str(i) for i in nodes if i not in set(order)))
        raise CyclicDependencyError(
            "Cycle detected in task dependency graph",
            details={"cycle": remaining},
        )
    return tuple(order)


def build_graph(
    root: TaskInstance,
    *,
    task_defaults: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> TaskGraph:
    """
    Expande `root` no grafo completo de dependências.

    Args:
        root: instância terminal (ex.: `train(lr=0.1)`).
        task_defaults: defaults de configuração por nome de task
            (`tasks.<nome>.<parâmetro>`).

    Raises:
        ConfigurationError: parâmetros inválidos, `requires()` com retorno
            inválido ou nomes de task duplicados.
        CyclicDependencyError: back-edge durante a expansão.
    """
    if isinstance(root, TaskDef):
        root = root()
    if not isinstance(root, TaskInstance):
        raise ConfigurationError(
            f"build_graph expects a task instance, got {type(root).__name__}",
            details={"received": type(root).__name__},
        )

    builder = _GraphBuilder(task_defaults)
    root_identity, _ = builder.visit(root, {})
    return TaskGraph(
        root=root_identity,
        nodes=dict(builder.nodes),
        edges=tuple(builder.edges.values()),
        order=topological_order(builder.nodes),
    )
